"""
Tests for confvault/config/codec.py - Configuration Envelope Codec

Tests cover:
- Canonical serialization
- Envelope layout and parsing
- Authenticated decryption failures
"""

import base64
import json
import os

import pytest

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from confvault.config.codec import ConfigCodec
from confvault.crypto.key_manager import EncryptionParameters, EncryptionResult
from confvault.errors import AuthenticationMismatch, DecodeError, KeyManagerError


FIELDS = {"AutoJoin": True, "PathTor": "/usr/bin/tor", "PortMumble": 64738}


@pytest.fixture
def codec():
    return ConfigCodec()


@pytest.fixture
def params():
    return EncryptionParameters.generate(iterations=1000).with_check(b"c" * 32)


@pytest.fixture
def result(params):
    return EncryptionResult(key=b"k" * 32, mac=b"m" * 32, valid=True, params=params)


def _rewrite(raw, **changes):
    header, body = raw.split(b"\n", 1)
    envelope = json.loads(body)
    envelope.update(changes)
    return header + b"\n" + json.dumps(envelope).encode("utf-8")


@pytest.mark.unit
class TestSerialization:
    """Tests for field serialization."""

    def test_serialize_is_canonical(self, codec):
        a = codec.serialize({"b": 1, "a": 2})
        b = codec.serialize({"a": 2, "b": 1})
        assert a == b == b'{"a":2,"b":1}'

    def test_deserialize_round_trip(self, codec):
        assert codec.deserialize(codec.serialize(FIELDS)) == FIELDS

    @pytest.mark.parametrize("data", [b"not json", b"[1, 2]", b"\xff\xfe"])
    def test_deserialize_rejects_non_objects(self, codec, data):
        with pytest.raises(DecodeError):
            codec.deserialize(data)


@pytest.mark.unit
class TestEnvelope:
    """Tests for encrypt / read_envelope / decrypt."""

    def test_encrypt_produces_header_and_json(self, codec, result, params):
        raw = codec.encrypt(FIELDS, result, params)

        assert codec.is_encrypted(raw)
        header, body = raw.split(b"\n", 1)
        assert header == b"# CONFVAULT-ENCRYPTED-CONFIG v1"
        envelope = json.loads(body)
        assert envelope["v"] == 1
        assert envelope["params"] == params.to_dict()
        assert len(base64.b64decode(envelope["nonce"])) == 12

    def test_round_trip(self, codec, result, params):
        raw = codec.encrypt(FIELDS, result, params)
        envelope = codec.read_envelope(raw)

        assert envelope.params == params
        assert codec.decrypt(envelope, result) == FIELDS

    def test_plaintext_not_visible(self, codec, result, params):
        raw = codec.encrypt(FIELDS, result, params)
        assert b"/usr/bin/tor" not in raw

    def test_wrong_key_is_mismatch(self, codec, result, params):
        envelope = codec.read_envelope(codec.encrypt(FIELDS, result, params))
        wrong = EncryptionResult(key=b"x" * 32, mac=b"m" * 32, valid=True, params=params)

        with pytest.raises(AuthenticationMismatch):
            codec.decrypt(envelope, wrong)

    def test_wrong_mac_is_mismatch(self, codec, result, params):
        envelope = codec.read_envelope(codec.encrypt(FIELDS, result, params))
        wrong = EncryptionResult(key=b"k" * 32, mac=b"x" * 32, valid=True, params=params)

        with pytest.raises(AuthenticationMismatch):
            codec.decrypt(envelope, wrong)

    def test_swapped_params_are_mismatch(self, codec, result, params):
        raw = codec.encrypt(FIELDS, result, params)
        other = EncryptionParameters.generate(iterations=1000).with_check(b"c" * 32)
        envelope = codec.read_envelope(_rewrite(raw, params=other.to_dict()))

        with pytest.raises(AuthenticationMismatch):
            codec.decrypt(envelope, result)

    def test_short_key_is_rejected(self, codec, params):
        short = EncryptionResult(key=b"k" * 16, mac=b"m" * 32, valid=True, params=params)
        with pytest.raises(KeyManagerError):
            codec.encrypt(FIELDS, short, params)

    def test_missing_header(self, codec):
        with pytest.raises(DecodeError):
            codec.read_envelope(b'{"v": 1}')

    def test_unsupported_version(self, codec, result, params):
        raw = _rewrite(codec.encrypt(FIELDS, result, params), v=99)
        with pytest.raises(DecodeError):
            codec.read_envelope(raw)

    def test_missing_ciphertext(self, codec, result, params):
        header, body = codec.encrypt(FIELDS, result, params).split(b"\n", 1)
        envelope = json.loads(body)
        del envelope["ciphertext"]
        with pytest.raises(DecodeError):
            codec.read_envelope(header + b"\n" + json.dumps(envelope).encode("utf-8"))

    @pytest.mark.parametrize("changes", [
        {"nonce": "AAAA"},
        {"nonce": "***"},
        {"ciphertext": "AAAA"},
        {"params": "nope"},
    ])
    def test_malformed_fields(self, codec, result, params, changes):
        raw = _rewrite(codec.encrypt(FIELDS, result, params), **changes)
        with pytest.raises(DecodeError):
            codec.read_envelope(raw)

    def test_body_not_object(self, codec):
        with pytest.raises(DecodeError):
            codec.read_envelope(ConfigCodec.HEADER.encode("utf-8") + b"[]")

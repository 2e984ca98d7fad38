"""
Configuration Codec - serialization and authenticated encryption.

File layout:

    # CONFVAULT-ENCRYPTED-CONFIG v1
    {"ciphertext": "<b64>", "nonce": "<b64>", "params": {...}, "v": 1}

The plaintext is canonical JSON of the persisted fields. It is sealed with
AES-256-GCM; the associated data binds the key manager's mac key and the
exact parameters written next to the ciphertext, so swapping parameters or
using the wrong secret both fail tag verification.
"""

import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..constants import Crypto, Files
from ..crypto.key_manager import EncryptionParameters, EncryptionResult
from ..errors import AuthenticationMismatch, DecodeError, KeyManagerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Envelope:
    """Parsed, still-encrypted configuration file."""
    params: EncryptionParameters
    nonce: bytes
    ciphertext: bytes


class ConfigCodec:
    """Turns field dictionaries into encrypted envelopes and back."""

    HEADER = Files.ENCRYPTED_HEADER
    VERSION = Files.ENVELOPE_VERSION

    def serialize(self, fields: Dict[str, Any]) -> bytes:
        """Canonical byte form of the fields."""
        return json.dumps(
            fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")

    def deserialize(self, data: bytes) -> Dict[str, Any]:
        try:
            fields = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"configuration payload is not valid JSON: {e}")
        if not isinstance(fields, dict):
            raise DecodeError("configuration payload must be a JSON object")
        return fields

    @staticmethod
    def _cipher(result: EncryptionResult) -> AESGCM:
        if len(result.key) != Crypto.KEY_SIZE:
            raise KeyManagerError(
                f"key material must be {Crypto.KEY_SIZE} bytes, got {len(result.key)}"
            )
        return AESGCM(bytes(result.key))

    @staticmethod
    def _associated_data(result: EncryptionResult, params: EncryptionParameters) -> bytes:
        return bytes(result.mac) + params.canonical_bytes()

    def encrypt(
        self,
        fields: Dict[str, Any],
        result: EncryptionResult,
        params: EncryptionParameters,
    ) -> bytes:
        """
        Seal fields into a complete file body.

        Args:
            fields: Persisted field dictionary
            result: Verified key material
            params: Parameters written into the envelope (with key check)
        """
        nonce = os.urandom(Crypto.NONCE_SIZE)
        aead = self._cipher(result)
        ciphertext = aead.encrypt(nonce, self.serialize(fields), self._associated_data(result, params))

        body = {
            "v": self.VERSION,
            "params": params.to_dict(),
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }
        return (self.HEADER + json.dumps(body, sort_keys=True) + "\n").encode("utf-8")

    def is_encrypted(self, raw: bytes) -> bool:
        return raw.startswith(self.HEADER.encode("utf-8"))

    def read_envelope(self, raw: bytes) -> Envelope:
        """Parse a file body without decrypting it."""
        if not self.is_encrypted(raw):
            raise DecodeError("missing encrypted configuration header")

        try:
            body = json.loads(raw[len(self.HEADER):].decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"configuration envelope is not valid JSON: {e}")
        if not isinstance(body, dict):
            raise DecodeError("configuration envelope must be a JSON object")

        if body.get("v") != self.VERSION:
            raise DecodeError(f"unsupported configuration envelope version: {body.get('v')!r}")

        params = EncryptionParameters.from_dict(body.get("params"))

        try:
            nonce = base64.b64decode(body["nonce"], validate=True)
            ciphertext = base64.b64decode(body["ciphertext"], validate=True)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"configuration envelope is incomplete: {e}")

        if len(nonce) != Crypto.NONCE_SIZE:
            raise DecodeError("configuration envelope nonce has the wrong size")
        if len(ciphertext) < 16:
            raise DecodeError("configuration envelope ciphertext is truncated")

        return Envelope(params=params, nonce=nonce, ciphertext=ciphertext)

    def decrypt(self, envelope: Envelope, result: EncryptionResult) -> Dict[str, Any]:
        """
        Verify and open an envelope.

        Raises:
            AuthenticationMismatch: tag verification failed (wrong secret or tampering)
            DecodeError: the plaintext is not a field dictionary
        """
        aead = self._cipher(result)
        try:
            plaintext = aead.decrypt(
                envelope.nonce,
                envelope.ciphertext,
                self._associated_data(result, envelope.params),
            )
        except InvalidTag:
            raise AuthenticationMismatch(
                "configuration decryption failed - key mismatch or data tampering"
            )
        return self.deserialize(plaintext)


__all__ = [
    'Envelope',
    'ConfigCodec',
]

"""Ed25519 / Curve25519 primitive boundary and Matrix base64 helpers.

Canonicalization and bundle logic only talk to an Ed25519Backend, so the
PyNaCl implementation here can be swapped without touching them.

Keys and signatures cross the JSON boundary as unpadded standard base64.
"""

from __future__ import annotations

import base64
import binascii
from typing import Protocol, Union

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.public import PrivateKey
from nacl.signing import SigningKey, VerifyKey

from keysign.exceptions import PrimitiveError

KEY_SIZE = 32
SIGNATURE_SIZE = 64


class Ed25519Backend(Protocol):
    def sign(self, secret_key: bytes, message: bytes) -> bytes: ...
    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool: ...
    def generate_signing_keypair(self) -> tuple[bytes, bytes]: ...
    def generate_curve25519_keypair(self) -> tuple[bytes, bytes]: ...


class NaclBackend:
    """Ed25519Backend backed by libsodium through PyNaCl."""

    def sign(self, secret_key: bytes, message: bytes) -> bytes:
        """Sign message with a 32-byte Ed25519 seed. Returns the 64-byte signature."""
        try:
            signing_key = SigningKey(secret_key)
        except (CryptoError, TypeError, ValueError) as exc:
            raise PrimitiveError(f"Invalid Ed25519 secret key: {exc}") from exc
        return signing_key.sign(message).signature

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        """Return True if signature is valid for message under public_key.

        A well-formed signature that does not match returns False; malformed
        key or signature lengths raise PrimitiveError.
        """
        if len(signature) != SIGNATURE_SIZE:
            raise PrimitiveError(
                f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}"
            )
        try:
            verify_key = VerifyKey(public_key)
        except (CryptoError, TypeError, ValueError) as exc:
            raise PrimitiveError(f"Invalid Ed25519 public key: {exc}") from exc

        try:
            verify_key.verify(message, signature)
        except BadSignatureError:
            return False
        except (CryptoError, TypeError, ValueError) as exc:
            raise PrimitiveError(f"Ed25519 verification error: {exc}") from exc
        return True

    def generate_signing_keypair(self) -> tuple[bytes, bytes]:
        signing_key = SigningKey.generate()
        return bytes(signing_key), bytes(signing_key.verify_key)

    def generate_curve25519_keypair(self) -> tuple[bytes, bytes]:
        private_key = PrivateKey.generate()
        return bytes(private_key), bytes(private_key.public_key)


_DEFAULT_BACKEND = NaclBackend()


def default_backend() -> NaclBackend:
    """The shared stateless PyNaCl backend."""
    return _DEFAULT_BACKEND


def encode_base64(raw: bytes) -> str:
    """Encode bytes as unpadded standard base64."""
    return base64.b64encode(raw).rstrip(b"=").decode("ascii")


def decode_base64(text: Union[str, bytes]) -> bytes:
    """Decode padded or unpadded base64, standard or URL-safe alphabet."""
    if isinstance(text, str):
        try:
            data = text.encode("ascii")
        except UnicodeEncodeError as exc:
            raise PrimitiveError("Base64 input must be ASCII") from exc
    else:
        data = bytes(text)

    data = data.rstrip(b"=").replace(b"-", b"+").replace(b"_", b"/")
    data += b"=" * (-len(data) % 4)
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise PrimitiveError(f"Invalid base64: {exc}") from exc

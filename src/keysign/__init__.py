"""Keysign: Matrix canonical JSON and Ed25519 device key attestation."""

from pathlib import Path

_VERSION_FILE = Path(__file__).resolve().parent.parent.parent / "VERSION"
__version__ = _VERSION_FILE.read_text().strip() if _VERSION_FILE.exists() else "0.0.0"

from keysign.exceptions import (
    KeysignError,
    CanonicalJsonError,
    NonCanonicalNumberError,
    MalformedDocumentError,
    InvalidSignatureError,
    PrimitiveError,
)

__all__ = [
    "__version__",
    "KeysignError",
    "CanonicalJsonError",
    "NonCanonicalNumberError",
    "MalformedDocumentError",
    "InvalidSignatureError",
    "PrimitiveError",
]

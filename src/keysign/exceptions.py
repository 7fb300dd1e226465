"""Keysign error hierarchy."""


class KeysignError(Exception):
    """Base exception for all keysign errors."""


class CanonicalJsonError(KeysignError, ValueError):
    """Value cannot be represented as Matrix canonical JSON."""


class NonCanonicalNumberError(CanonicalJsonError):
    """Number is fractional, non-finite, or outside the safe integer range."""


class MalformedDocumentError(KeysignError):
    """Expected signature path is absent from the document."""


class InvalidSignatureError(KeysignError):
    """Ed25519 signature verification failed."""


class PrimitiveError(KeysignError):
    """Underlying cryptographic primitive rejected its input."""

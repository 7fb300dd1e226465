"""Ed25519 signing and verification of Matrix JSON objects.

The signed payload is the canonical JSON of the object with its top-level
"signatures" and "unsigned" members removed. Signatures live at
signatures[<user_id>][<algorithm>:<key_id>] as unpadded base64.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from nacl.signing import SigningKey, VerifyKey

from keysign._canonical import canonical_json, parse_json
from keysign.exceptions import (
    CanonicalJsonError,
    InvalidSignatureError,
    MalformedDocumentError,
    PrimitiveError,
)
from keysign.models import ED25519, DeviceKeys, key_id as make_key_id
from keysign.primitives import Ed25519Backend, decode_base64, default_backend, encode_base64

logger = logging.getLogger(__name__)

VOLATILE_FIELDS = frozenset({"signatures", "unsigned"})

SecretKey = Union[SigningKey, bytes]
PublicKey = Union[VerifyKey, str, bytes]
Document = Union[Mapping, DeviceKeys, str, bytes]


def _secret_seed(secret_key: SecretKey) -> bytes:
    return bytes(secret_key)


def _public_key_bytes(public_key: PublicKey) -> bytes:
    """Base64 strings are decoded; VerifyKey and raw bytes are used as-is."""
    if isinstance(public_key, str):
        return decode_base64(public_key)
    return bytes(public_key)


def _as_document(document: Document) -> Any:
    if isinstance(document, DeviceKeys):
        return document.to_json()
    if isinstance(document, (str, bytes)):
        try:
            return parse_json(document)
        except CanonicalJsonError as exc:
            raise MalformedDocumentError(f"Document is not valid JSON: {exc}") from exc
    return document


def _extract_signature(document: Any, user_id: str, key_id: str) -> Any:
    """Return signatures[user_id][key_id] or raise MalformedDocumentError."""
    if not isinstance(document, Mapping):
        raise MalformedDocumentError("Document must be a JSON object")
    signatures = document.get("signatures")
    if not isinstance(signatures, Mapping):
        raise MalformedDocumentError("Document has no signatures")
    user_signatures = signatures.get(user_id)
    if not isinstance(user_signatures, Mapping):
        raise MalformedDocumentError(f"Document has no signatures from {user_id}")
    if key_id not in user_signatures:
        raise MalformedDocumentError(f"Document has no {key_id} signature from {user_id}")
    return user_signatures[key_id]


def strip_volatile(document: Mapping) -> dict:
    """Deep copy of document without its top-level signatures/unsigned."""
    return {
        k: copy.deepcopy(v)
        for k, v in document.items()
        if k not in VOLATILE_FIELDS
    }


def sign_json(
    secret_key: SecretKey,
    payload: Any,
    backend: Optional[Ed25519Backend] = None,
) -> str:
    """Sign the canonical form of payload exactly as given.

    The payload must not carry signatures/unsigned members; use
    strip_volatile() first on documents that may. Returns the signature as
    unpadded base64.
    """
    backend = backend or default_backend()
    message = canonical_json(payload)
    signature = backend.sign(_secret_seed(secret_key), message)
    logger.debug("Signed %d bytes of canonical JSON", len(message))
    return encode_base64(signature)


def attach_signature(document: dict, user_id: str, key_id: str, signature: str) -> dict:
    """Insert signature at document["signatures"][user_id][key_id].

    Mutates and returns document. Callers must not attach to the same
    document from several threads at once.
    """
    signatures = document.setdefault("signatures", {})
    if not isinstance(signatures, dict):
        raise MalformedDocumentError("Document signatures must be a JSON object")
    user_signatures = signatures.setdefault(user_id, {})
    if not isinstance(user_signatures, dict):
        raise MalformedDocumentError(f"Signatures from {user_id} must be a JSON object")
    user_signatures[key_id] = signature
    return document


def verify_json_signature(
    document: Document,
    user_id: str,
    key_id: str,
    public_key: PublicKey,
    backend: Optional[Ed25519Backend] = None,
) -> bool:
    """Verify the signature at signatures[user_id][key_id] against public_key.

    Returns False for a present but invalid signature, including malformed
    keys or signatures. Raises MalformedDocumentError when the document has no
    signature at that path. The document is never mutated.
    """
    backend = backend or default_backend()
    data = _as_document(document)
    signature = _extract_signature(data, user_id, key_id)
    if not isinstance(signature, str):
        logger.warning("Signature %s from %s is not a string", key_id, user_id)
        return False

    try:
        message = canonical_json(strip_volatile(data))
    except CanonicalJsonError as exc:
        logger.warning("Signed object from %s is not canonical JSON: %s", user_id, exc)
        return False

    try:
        valid = backend.verify(
            _public_key_bytes(public_key), message, decode_base64(signature)
        )
    except PrimitiveError as exc:
        logger.warning("Signature %s from %s rejected: %s", key_id, user_id, exc)
        return False

    logger.debug("Signature %s from %s valid=%s", key_id, user_id, valid)
    return valid


def verify_identity_signature(
    document: Document,
    device_id: str,
    user_id: str,
    public_key: PublicKey,
    backend: Optional[Ed25519Backend] = None,
) -> bool:
    """Verify a device's self-signature over its device keys."""
    return verify_json_signature(
        document, user_id, make_key_id(ED25519, device_id), public_key, backend
    )


def ensure_identity_signature(
    document: Document,
    device_id: str,
    user_id: str,
    public_key: PublicKey,
    backend: Optional[Ed25519Backend] = None,
) -> None:
    """Like verify_identity_signature, but raises InvalidSignatureError on failure."""
    if not verify_identity_signature(document, device_id, user_id, public_key, backend):
        raise InvalidSignatureError(
            f"Device key signature from {user_id} ({device_id}) verification failed"
        )


def sign_device_keys(
    device_keys: DeviceKeys,
    signing_key: SigningKey,
    backend: Optional[Ed25519Backend] = None,
) -> DeviceKeys:
    """Sign a device key bundle with the device's own Ed25519 key.

    Returns a new DeviceKeys with the signature attached. Raises
    InvalidSignatureError if the signing key is not the bundle's ed25519 key.
    """
    expected = encode_base64(bytes(signing_key.verify_key))
    if device_keys.signing_key() != expected:
        raise InvalidSignatureError("Signing key does not match device ed25519 key")

    document = device_keys.to_json()
    signature = sign_json(signing_key, strip_volatile(document), backend)
    attach_signature(
        document,
        device_keys.user_id,
        make_key_id(ED25519, device_keys.device_id),
        signature,
    )
    return DeviceKeys.from_json(document)


def verify_device_keys(
    device_keys: Document,
    backend: Optional[Ed25519Backend] = None,
) -> bool:
    """Verify a device key bundle against the ed25519 key it lists for itself.

    Raises MalformedDocumentError if the bundle is not a valid DeviceKeys
    object or lacks its own signature.
    """
    if not isinstance(device_keys, DeviceKeys):
        data = _as_document(device_keys)
        try:
            device_keys = DeviceKeys.from_json(data)
        except ValueError as exc:
            raise MalformedDocumentError(f"Invalid device keys: {exc}") from exc
        document = data
    else:
        document = device_keys.to_json()

    public_key = device_keys.signing_key()
    if public_key is None:
        raise MalformedDocumentError(
            f"Device {device_keys.device_id} lists no ed25519 key"
        )
    return verify_identity_signature(
        document, device_keys.device_id, device_keys.user_id, public_key, backend
    )

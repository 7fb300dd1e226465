"""Device account: identity keys, one-time key pool, signed key uploads.

An OlmAccount owns one device's Ed25519 signing key, its Curve25519 identity
key, and its pool of unpublished one-time keys. Nothing is persisted; callers
own the account object and pass it where signing is needed.

One-time key ids are the unpadded base64 of a 32-bit big-endian counter
starting at 1 ("AAAAAQ").
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Optional, Union

from keysign.models import (
    ED25519,
    SIGNED_CURVE25519,
    DeviceKeys,
    IdentityKeys,
    OneTimeKey,
    key_id,
)
from keysign.primitives import Ed25519Backend, default_backend, encode_base64
from keysign.signing import attach_signature, sign_json, strip_volatile

logger = logging.getLogger(__name__)

MAX_ONE_TIME_KEYS = 100


class OlmAccount:
    """Owned key material for a single Matrix device."""

    def __init__(
        self,
        user_id: str,
        device_id: str,
        ed25519_secret: bytes,
        ed25519_public: bytes,
        curve25519_secret: bytes,
        curve25519_public: bytes,
        backend: Optional[Ed25519Backend] = None,
    ) -> None:
        self.user_id = user_id
        self.device_id = device_id
        self._backend = backend or default_backend()
        self._ed25519_secret = ed25519_secret
        self._curve25519_secret = curve25519_secret
        self._identity_keys = IdentityKeys(
            curve25519=encode_base64(curve25519_public),
            ed25519=encode_base64(ed25519_public),
        )
        self._key_counter = 0
        # key_id -> (secret, public key model), oldest first
        self._unpublished: OrderedDict[str, tuple[bytes, OneTimeKey]] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        user_id: str,
        device_id: str,
        backend: Optional[Ed25519Backend] = None,
    ) -> OlmAccount:
        """Create an account with freshly generated identity keys."""
        backend = backend or default_backend()
        ed_secret, ed_public = backend.generate_signing_keypair()
        curve_secret, curve_public = backend.generate_curve25519_keypair()
        logger.debug("Created account for %s device %s", user_id, device_id)
        return cls(
            user_id,
            device_id,
            ed_secret,
            ed_public,
            curve_secret,
            curve_public,
            backend=backend,
        )

    @property
    def signing_key_id(self) -> str:
        return key_id(ED25519, self.device_id)

    def identity_keys(self) -> IdentityKeys:
        return self._identity_keys

    # --- Signing ---

    def sign_message(self, message: Union[str, bytes]) -> str:
        """Sign raw bytes (str is UTF-8 encoded). Returns unpadded base64."""
        if isinstance(message, str):
            message = message.encode("utf-8")
        return encode_base64(self._backend.sign(self._ed25519_secret, message))

    def sign_json(self, payload: dict) -> str:
        """Sign a JSON object, ignoring any signatures/unsigned it carries."""
        return sign_json(self._ed25519_secret, strip_volatile(payload), self._backend)

    def _unsigned_device_keys(self) -> DeviceKeys:
        return DeviceKeys.build(self.user_id, self.device_id, self._identity_keys)

    def sign_identity_keys(self) -> str:
        """Signature over this device's unsigned device keys object."""
        return self.sign_json(self._unsigned_device_keys().to_json())

    def device_keys(self) -> DeviceKeys:
        """This device's keys, self-signed."""
        document = self._unsigned_device_keys().to_json()
        attach_signature(document, self.user_id, self.signing_key_id, self.sign_json(document))
        return DeviceKeys.from_json(document)

    # --- One-time keys ---

    def generate_one_time_keys(self, count: int) -> list[OneTimeKey]:
        """Add count new one-time keys to the unpublished pool.

        The pool holds at most MAX_ONE_TIME_KEYS; the oldest unpublished keys
        are discarded beyond that. Returns the keys generated.
        """
        if count < 0:
            raise ValueError("count must be non-negative")

        generated = []
        with self._lock:
            for _ in range(count):
                self._key_counter += 1
                secret, public = self._backend.generate_curve25519_keypair()
                otk = OneTimeKey(
                    key_id=encode_base64(self._key_counter.to_bytes(4, "big")),
                    curve25519=encode_base64(public),
                )
                self._unpublished[otk.key_id] = (secret, otk)
                generated.append(otk)

            dropped = 0
            while len(self._unpublished) > MAX_ONE_TIME_KEYS:
                self._unpublished.popitem(last=False)
                dropped += 1
        if dropped:
            logger.warning(
                "One-time key pool full, discarded %d oldest unpublished keys", dropped
            )
        return generated

    def one_time_keys(self) -> list[OneTimeKey]:
        """Unpublished one-time keys, oldest first."""
        with self._lock:
            return [otk for _, otk in self._unpublished.values()]

    def sign_one_time_key(self, otk: OneTimeKey) -> dict:
        """{"key": ..., "signatures": {...}} for a signed_curve25519 upload."""
        document = otk.to_json()
        attach_signature(document, self.user_id, self.signing_key_id, self.sign_json(document))
        return document

    def mark_keys_as_published(self) -> int:
        """Consume every unpublished key so it is never offered again."""
        with self._lock:
            count = len(self._unpublished)
            self._unpublished.clear()
        logger.debug("Marked %d one-time keys as published", count)
        return count

    def create_upload_keys_request(self) -> dict[str, Any]:
        """Body for a /keys/upload request: signed device keys and one-time keys."""
        one_time_keys = {
            key_id(SIGNED_CURVE25519, otk.key_id): self.sign_one_time_key(otk)
            for otk in self.one_time_keys()
        }
        return {
            "device_keys": self.device_keys().to_json(),
            "one_time_keys": one_time_keys,
        }

"""Pydantic models for Matrix device key bundles.

Wire shape follows the /keys/upload device_keys object: user_id, device_id,
algorithms, keys keyed "<algorithm>:<device_id>", then signatures and unsigned
once the bundle has been signed or received.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from keysign.exceptions import PrimitiveError
from keysign.primitives import KEY_SIZE, decode_base64

OLM_ALGORITHM = "m.olm.v1.curve25519-aes-sha2"
MEGOLM_ALGORITHM = "m.megolm.v1.aes-sha2"
DEFAULT_ALGORITHMS = [OLM_ALGORITHM, MEGOLM_ALGORITHM]

CURVE25519 = "curve25519"
ED25519 = "ed25519"
SIGNED_CURVE25519 = "signed_curve25519"


def key_id(algorithm: str, device_id: str) -> str:
    """Build a "<algorithm>:<device_id>" key identifier."""
    return f"{algorithm}:{device_id}"


def _validate_public_key(v: str) -> str:
    try:
        raw = decode_base64(v)
    except PrimitiveError:
        raise ValueError("key must be valid base64")
    if len(raw) != KEY_SIZE:
        raise ValueError(f"key must decode to {KEY_SIZE} bytes")
    return v


# --- Data Models ---

class IdentityKeys(BaseModel):
    model_config = ConfigDict(frozen=True)

    curve25519: str
    ed25519: str

    @field_validator("curve25519", "ed25519")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return _validate_public_key(v)

    def to_json(self) -> dict:
        return identity_keys_json(self)


class OneTimeKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    key_id: str
    curve25519: str

    @field_validator("curve25519")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return _validate_public_key(v)

    def to_json(self) -> dict:
        """The signable one-time key object."""
        return {"key": self.curve25519}


class DeviceKeys(BaseModel):
    # unknown top-level members are part of the signed payload
    model_config = ConfigDict(extra="allow")

    user_id: str
    device_id: str
    algorithms: list[str] = Field(default_factory=lambda: list(DEFAULT_ALGORITHMS))
    keys: dict[str, str]
    signatures: Optional[dict[str, dict[str, str]]] = None
    unsigned: Optional[dict[str, Any]] = None

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        if not v.startswith("@") or ":" not in v:
            raise ValueError("user_id must look like '@localpart:server'")
        return v

    @field_validator("device_id")
    @classmethod
    def validate_device_id(cls, v: str) -> str:
        if not v:
            raise ValueError("device_id must not be empty")
        return v

    @classmethod
    def build(
        cls,
        user_id: str,
        device_id: str,
        identity_keys: IdentityKeys,
        algorithms: Optional[list[str]] = None,
    ) -> DeviceKeys:
        """Compose an unsigned bundle from a device's identity keys."""
        return cls(
            user_id=user_id,
            device_id=device_id,
            algorithms=list(algorithms if algorithms is not None else DEFAULT_ALGORITHMS),
            keys={
                key_id(CURVE25519, device_id): identity_keys.curve25519,
                key_id(ED25519, device_id): identity_keys.ed25519,
            },
        )

    @classmethod
    def from_json(cls, data: dict) -> DeviceKeys:
        return cls.model_validate(data)

    def to_json(self) -> dict:
        """Render as a plain JSON object; signatures/unsigned only when present."""
        data = self.model_dump(mode="json")
        for field in ("signatures", "unsigned"):
            if data[field] is None:
                del data[field]
        return data

    def signing_key(self) -> Optional[str]:
        """The device's own ed25519 key, if listed."""
        return self.keys.get(key_id(ED25519, self.device_id))


def identity_keys_json(keys: IdentityKeys) -> dict:
    """Render identity keys as {"curve25519": ..., "ed25519": ...}."""
    return {CURVE25519: keys.curve25519, ED25519: keys.ed25519}

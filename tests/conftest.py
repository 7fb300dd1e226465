"""Shared fixtures for keysign tests."""

from __future__ import annotations

import copy

import pytest
from nacl.signing import SigningKey

from keysign.account import OlmAccount
from keysign.primitives import encode_base64

ALICE = "@alice:matrix.org"
ALICE_DEVICE = "FKALSOCCC"

# Device keys uploaded by a Riot web client, signed by the device itself.
RIOT_USER = "@nheko_test:matrix.org"
RIOT_DEVICE = "VVLXGGTJGN"
RIOT_ED25519 = "L5IUXmjZGzZO9IwB/j61lTjuD79TCMRDM4bBHvGstT4"
_RIOT_DEVICE_KEYS = {
    "algorithms": [
        "m.olm.v1.curve25519-aes-sha2",
        "m.megolm.v1.aes-sha2",
    ],
    "device_id": RIOT_DEVICE,
    "keys": {
        "curve25519:VVLXGGTJGN": "TEdjuBVstvGMy0NYJxpeD7Zo97bLEgT2ukefWDPbe0w",
        "ed25519:VVLXGGTJGN": RIOT_ED25519,
    },
    "signatures": {
        RIOT_USER: {
            "ed25519:VVLXGGTJGN": (
                "tVWnGmZ5cMHiLJiaMhkZjNThQXlvFBsal3dclgPyiqkm/dG7F65U8xHpRb3Q"
                "WFWALo9iy+L7W+fwv0yGhJFxBQ"
            ),
        },
    },
    "unsigned": {
        "device_display_name": "https://riot.im/develop/ via Firefox on Linux",
    },
    "user_id": RIOT_USER,
}


def _pubkey(sk: SigningKey) -> str:
    return encode_base64(bytes(sk.verify_key))


@pytest.fixture
def riot_device_keys():
    """A real signed device keys object (fresh copy per test)."""
    return copy.deepcopy(_RIOT_DEVICE_KEYS)


@pytest.fixture
def signing_key():
    """A fresh Ed25519 signing key."""
    return SigningKey.generate()


@pytest.fixture
def signing_key_b():
    """A second Ed25519 signing key."""
    return SigningKey.generate()


@pytest.fixture
def pubkey(signing_key):
    return _pubkey(signing_key)


@pytest.fixture
def pubkey_b(signing_key_b):
    return _pubkey(signing_key_b)


@pytest.fixture
def curve_key():
    """Any valid 32-byte public key in unpadded base64."""
    return _pubkey(SigningKey.generate())


@pytest.fixture
def account():
    """A fresh device account for @alice."""
    return OlmAccount.create(ALICE, ALICE_DEVICE)

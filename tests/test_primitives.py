"""Tests for keysign.primitives: PyNaCl backend and unpadded base64."""

import pytest

from keysign.exceptions import PrimitiveError
from keysign.primitives import (
    KEY_SIZE,
    SIGNATURE_SIZE,
    NaclBackend,
    decode_base64,
    default_backend,
    encode_base64,
)


class TestBase64:
    def test_unpadded(self):
        assert encode_base64(b"\x00\x00\x00\x01") == "AAAAAQ"

    def test_decode_unpadded(self):
        assert decode_base64("AAAAAQ") == b"\x00\x00\x00\x01"

    def test_decode_padded(self):
        assert decode_base64("AAAAAQ==") == b"\x00\x00\x00\x01"

    def test_decode_url_safe(self):
        assert decode_base64("-_8") == decode_base64("+/8") == b"\xfb\xff"

    def test_decode_bytes(self):
        assert decode_base64(b"AAAAAQ") == b"\x00\x00\x00\x01"

    @pytest.mark.parametrize("text", ["A", "no spaces", "ab$d", "日本"])
    def test_invalid(self, text):
        with pytest.raises(PrimitiveError):
            decode_base64(text)


class TestNaclBackend:
    def test_default_backend_shared(self):
        assert default_backend() is default_backend()

    def test_sign_verify(self):
        backend = NaclBackend()
        secret, public = backend.generate_signing_keypair()
        assert len(secret) == KEY_SIZE
        assert len(public) == KEY_SIZE

        signature = backend.sign(secret, b"message")
        assert len(signature) == SIGNATURE_SIZE
        assert backend.verify(public, b"message", signature) is True

    def test_deterministic(self):
        backend = NaclBackend()
        secret, _ = backend.generate_signing_keypair()
        assert backend.sign(secret, b"same") == backend.sign(secret, b"same")

    def test_flipped_byte_fails(self):
        backend = NaclBackend()
        secret, public = backend.generate_signing_keypair()
        message = b'{"a":"1","b":"2"}'
        signature = backend.sign(secret, message)
        for i in range(len(message)):
            tampered = bytearray(message)
            tampered[i] ^= 0x01
            assert backend.verify(public, bytes(tampered), signature) is False

    def test_other_key_fails(self):
        backend = NaclBackend()
        secret, _ = backend.generate_signing_keypair()
        _, other_public = backend.generate_signing_keypair()
        signature = backend.sign(secret, b"message")
        assert backend.verify(other_public, b"message", signature) is False

    def test_bad_signature_length(self):
        backend = NaclBackend()
        _, public = backend.generate_signing_keypair()
        with pytest.raises(PrimitiveError, match="64 bytes"):
            backend.verify(public, b"message", b"\x00" * 10)

    def test_bad_public_key_length(self):
        backend = NaclBackend()
        with pytest.raises(PrimitiveError, match="public key"):
            backend.verify(b"\x00" * 5, b"message", b"\x00" * SIGNATURE_SIZE)

    def test_bad_secret_key_length(self):
        with pytest.raises(PrimitiveError, match="secret key"):
            NaclBackend().sign(b"short", b"message")

    def test_curve25519_keypair(self):
        secret, public = NaclBackend().generate_curve25519_keypair()
        assert len(secret) == KEY_SIZE
        assert len(public) == KEY_SIZE
        assert secret != public

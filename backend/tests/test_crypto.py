"""Tests for the key envelope — wrapping, message AEAD, tamper detection."""
import base64
import os

import pytest

from groupvault.crypto import (
    GROUP_KEY_SIZE,
    KeyEnvelope,
    decrypt_message,
    encrypt_message,
    generate_group_key,
    load_master_key,
    unwrap_group_key,
    wrap_group_key,
)
from groupvault.errors import AuthenticationFailed, InvalidEncoding, InvalidKeyLength


def _flip_first_byte(b64_value: str) -> str:
    raw = bytearray(base64.b64decode(b64_value))
    raw[0] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestGroupKeyWrapping:
    def test_wrap_unwrap_round_trip(self):
        master = os.urandom(32)
        for _ in range(25):
            group_key = generate_group_key()
            wrapped, nonce = wrap_group_key(master, group_key)
            assert unwrap_group_key(master, wrapped, nonce) == group_key

    def test_wrapped_key_is_not_the_key(self):
        master = os.urandom(32)
        group_key = generate_group_key()
        wrapped, _ = wrap_group_key(master, group_key)
        assert group_key not in base64.b64decode(wrapped)

    def test_master_key_must_be_32_bytes(self):
        with pytest.raises(InvalidKeyLength):
            wrap_group_key(os.urandom(31), generate_group_key())
        with pytest.raises(InvalidKeyLength):
            wrap_group_key(os.urandom(33), generate_group_key())
        with pytest.raises(InvalidKeyLength):
            unwrap_group_key(os.urandom(16), "AAAA", "AAAA")

    def test_unwrap_with_wrong_master_key_fails_authentication(self):
        wrapped, nonce = wrap_group_key(os.urandom(32), generate_group_key())
        with pytest.raises(AuthenticationFailed):
            unwrap_group_key(os.urandom(32), wrapped, nonce)

    def test_unwrap_tampered_wrapped_key_fails(self):
        master = os.urandom(32)
        wrapped, nonce = wrap_group_key(master, generate_group_key())
        with pytest.raises(AuthenticationFailed):
            unwrap_group_key(master, _flip_first_byte(wrapped), nonce)

    def test_unwrap_malformed_input_is_invalid_encoding(self):
        master = os.urandom(32)
        wrapped, nonce = wrap_group_key(master, generate_group_key())
        with pytest.raises(InvalidEncoding):
            unwrap_group_key(master, "not base64!!", nonce)
        with pytest.raises(InvalidEncoding):
            unwrap_group_key(master, wrapped, base64.b64encode(b"short").decode())

    def test_nonces_never_repeat_across_10000_wraps(self):
        master = os.urandom(32)
        group_key = generate_group_key()
        nonces = {wrap_group_key(master, group_key)[1] for _ in range(10_000)}
        assert len(nonces) == 10_000


class TestMessageEncryption:
    def test_round_trip(self):
        key = generate_group_key()
        for plaintext in (b"", b"hi", "héllo wörld ✓".encode("utf-8"), os.urandom(4096)):
            ciphertext, nonce = encrypt_message(key, plaintext)
            assert decrypt_message(key, ciphertext, nonce) == plaintext

    def test_group_key_must_be_16_bytes(self):
        with pytest.raises(InvalidKeyLength):
            encrypt_message(os.urandom(32), b"hello")
        with pytest.raises(InvalidKeyLength):
            decrypt_message(os.urandom(15), "AAAA", "AAAA")

    def test_altered_ciphertext_byte_fails_authentication(self):
        key = generate_group_key()
        ciphertext, nonce = encrypt_message(key, b"attack at dawn")
        with pytest.raises(AuthenticationFailed):
            decrypt_message(key, _flip_first_byte(ciphertext), nonce)

    def test_altered_nonce_byte_fails_authentication(self):
        key = generate_group_key()
        ciphertext, nonce = encrypt_message(key, b"attack at dawn")
        with pytest.raises(AuthenticationFailed):
            decrypt_message(key, ciphertext, _flip_first_byte(nonce))

    def test_wrong_group_key_fails_authentication(self):
        ciphertext, nonce = encrypt_message(generate_group_key(), b"secret")
        with pytest.raises(AuthenticationFailed):
            decrypt_message(generate_group_key(), ciphertext, nonce)

    def test_same_plaintext_encrypts_differently(self):
        key = generate_group_key()
        first = encrypt_message(key, b"same")
        second = encrypt_message(key, b"same")
        assert first[0] != second[0]
        assert first[1] != second[1]


class TestKeyEnvelope:
    def test_seal_and_unwrap(self):
        envelope = KeyEnvelope(os.urandom(32))
        wrapped, nonce = envelope.seal_new_group_key()
        assert len(envelope.unwrap(wrapped, nonce)) == GROUP_KEY_SIZE

    def test_rejects_short_master_key(self):
        with pytest.raises(InvalidKeyLength):
            KeyEnvelope(b"too short")

    def test_repr_does_not_leak_master_key(self):
        master = os.urandom(32)
        envelope = KeyEnvelope(master)
        assert master.hex() not in repr(envelope)
        assert "redacted" in repr(envelope)


class TestLoadMasterKey:
    def test_hex(self):
        master = os.urandom(32)
        assert load_master_key(master.hex()) == master

    def test_base64(self):
        master = os.urandom(32)
        assert load_master_key(base64.b64encode(master).decode()) == master

    def test_raw_32_characters(self):
        assert load_master_key("k" * 32) == b"k" * 32

    @pytest.mark.parametrize("value", ["", "short", "x" * 33])
    def test_rejects_wrong_length(self, value):
        with pytest.raises(InvalidKeyLength):
            load_master_key(value)

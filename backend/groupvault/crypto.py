"""Key envelope: master key wraps per-group keys, group keys encrypt messages.

Wire layout of every sealed value is a pair of standard-base64 strings
``(ciphertext_with_tag, nonce)``. Keys never leave this module unwrapped
except as the return value of ``unwrap_group_key``.
"""
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from groupvault.errors import AuthenticationFailed, InvalidEncoding, InvalidKeyLength

MASTER_KEY_SIZE = 32  # AES-256
GROUP_KEY_SIZE = 16   # AES-128
NONCE_SIZE = 12       # GCM standard nonce


# ---------- ENCODING ----------

def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(text: str, what: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise InvalidEncoding(f"{what} is not valid base64") from exc


def _check_key(key: bytes, size: int, what: str) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != size:
        raise InvalidKeyLength(f"{what} must be exactly {size} bytes")


# ---------- AEAD PRIMITIVES ----------

def _seal(key: bytes, plaintext: bytes) -> tuple[str, str]:
    """AES-GCM with a fresh CSPRNG nonce for every call."""
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(bytes(key)).encrypt(nonce, plaintext, None)
    return _b64encode(ciphertext), _b64encode(nonce)


def _open(key: bytes, b64_ciphertext: str, b64_nonce: str) -> bytes:
    ciphertext = _b64decode(b64_ciphertext, "ciphertext")
    nonce = _b64decode(b64_nonce, "nonce")
    if len(nonce) != NONCE_SIZE:
        raise InvalidEncoding(f"nonce must be {NONCE_SIZE} bytes")
    try:
        return AESGCM(bytes(key)).decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise AuthenticationFailed("authentication tag did not verify") from exc


# ---------- GROUP KEYS ----------

def generate_group_key() -> bytes:
    return os.urandom(GROUP_KEY_SIZE)


def wrap_group_key(master_key: bytes, group_key: bytes) -> tuple[str, str]:
    """AES-256-GCM → (wrapped_key, nonce), both base64."""
    _check_key(master_key, MASTER_KEY_SIZE, "master key")
    _check_key(group_key, GROUP_KEY_SIZE, "group key")
    return _seal(master_key, bytes(group_key))


def unwrap_group_key(master_key: bytes, wrapped_key: str, nonce: str) -> bytes:
    _check_key(master_key, MASTER_KEY_SIZE, "master key")
    group_key = _open(master_key, wrapped_key, nonce)
    _check_key(group_key, GROUP_KEY_SIZE, "unwrapped group key")
    return group_key


# ---------- MESSAGES ----------

def encrypt_message(group_key: bytes, plaintext: bytes) -> tuple[str, str]:
    """AES-128-GCM → (ciphertext, nonce), both base64."""
    _check_key(group_key, GROUP_KEY_SIZE, "group key")
    return _seal(group_key, plaintext)


def decrypt_message(group_key: bytes, ciphertext: str, nonce: str) -> bytes:
    _check_key(group_key, GROUP_KEY_SIZE, "group key")
    return _open(group_key, ciphertext, nonce)


# ---------- MASTER KEY ----------

def load_master_key(value: str) -> bytes:
    """Decode a configured master key given as hex, base64 or raw 32 chars."""
    value = (value or "").strip()
    if len(value) == 2 * MASTER_KEY_SIZE:
        try:
            return bytes.fromhex(value)
        except ValueError:
            pass
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        decoded = b""
    if len(decoded) == MASTER_KEY_SIZE:
        return decoded
    raw = value.encode("utf-8")
    if len(raw) == MASTER_KEY_SIZE:
        return raw
    raise InvalidKeyLength(f"MASTER_KEY must decode to exactly {MASTER_KEY_SIZE} bytes")


class KeyEnvelope:
    """Holds the process master key; the single entry point for group-key use."""

    def __init__(self, master_key: bytes):
        _check_key(master_key, MASTER_KEY_SIZE, "master key")
        self._master_key = bytes(master_key)

    def __repr__(self) -> str:
        return "KeyEnvelope(<redacted>)"

    def seal_new_group_key(self) -> tuple[str, str]:
        """Generate a fresh group key and return only its wrapped form."""
        return wrap_group_key(self._master_key, generate_group_key())

    def unwrap(self, wrapped_key: str, nonce: str) -> bytes:
        return unwrap_group_key(self._master_key, wrapped_key, nonce)

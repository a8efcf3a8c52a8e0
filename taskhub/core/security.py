"""
Password digests (bcrypt, fixed salt), session-token transport encryption
(AES-256-CBC) and random identifier generation.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

import bcrypt
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from taskhub.core.config import settings

# Stored digests are the first 36 characters of the bcrypt output, i.e. the
# "$2b$10$" prefix, the 22-char salt and only 7 characters of actual hash.
# Existing rows depend on this format, so it must not change.
DIGEST_LENGTH = 36

# Session tokens are encrypted with a constant all-zero IV, which makes the
# ciphertext for a given session id deterministic. Kept for token interop.
_ZERO_IV = bytes(16)
_BCRYPT_MAX_BYTES = 72


# ── Passwords ───────────────────────────────────────────────────────
def hash_password(plain: str) -> str:
    pwd_bytes = plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    digest = bcrypt.hashpw(pwd_bytes, settings.PASSWORD_SALT.encode("utf-8"))
    return digest.decode("utf-8")[:DIGEST_LENGTH]


def verify_password(plain: str, stored: str) -> bool:
    return hmac.compare_digest(hash_password(plain), stored or "")


# ── Session token transport ─────────────────────────────────────────
def _cipher() -> Cipher:
    key = hashlib.sha256(settings.ENCRYPTION_KEY.encode("utf-8")).digest()
    return Cipher(algorithms.AES(key), modes.CBC(_ZERO_IV))


def encrypt_session_id(session_id: str) -> str:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    data = padder.update(session_id.encode("utf-8")) + padder.finalize()
    encryptor = _cipher().encryptor()
    return (encryptor.update(data) + encryptor.finalize()).hex()


def decrypt_session_id(token: str | None) -> str | None:
    """Return the plaintext session id, or ``None`` if *token* is not one of ours."""
    if not token:
        return None
    try:
        raw = bytes.fromhex(token)
        decryptor = _cipher().decryptor()
        data = decryptor.update(raw) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return (unpadder.update(data) + unpadder.finalize()).decode("utf-8")
    except (ValueError, TypeError):
        # bad hex, partial block, bad padding, non-UTF-8 (UnicodeDecodeError)
        return None


# ── Identifiers ─────────────────────────────────────────────────────
def generate_session_id() -> str:
    return secrets.token_hex(8)


def generate_task_id() -> str:
    return secrets.token_hex(8)


def generate_otp() -> str:
    return f"{100000 + secrets.randbelow(900000):06d}"


def generate_placeholder() -> str:
    """Filler for OTP payload slots that carry no password."""
    return secrets.token_urlsafe(8)[:10]

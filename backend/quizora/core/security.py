# backend/quizora/core/security.py
import hashlib
import hmac
import secrets
import string

import bcrypt

from quizora.core.config import settings


def _pre_hash_bytes(password: str) -> bytes:
    """Return the raw SHA-256 digest bytes for the provided password.

    We use the raw digest (32 bytes) to ensure the input to bcrypt is always
    <= 72 bytes. Using the raw digest preserves entropy and is deterministic
    so verification can re-compute it.
    """
    return hashlib.sha256(password.encode("utf-8", errors="ignore")).digest()


def hash_password(password: str) -> str:
    """Hash a plain password, returning a salted bcrypt hash string."""
    pre = _pre_hash_bytes(password)
    hashed = bcrypt.hashpw(pre, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored bcrypt hash.

    bcrypt.checkpw compares in constant time; a malformed stored hash counts
    as a mismatch.
    """
    if not hashed_password:
        return False
    pre = _pre_hash_bytes(plain_password)
    try:
        return bcrypt.checkpw(pre, hashed_password.encode("utf-8"))
    except ValueError:
        return False


# -------------------- one-time codes --------------------
def generate_numeric_code(length: int = None) -> str:
    length = length or settings.OTP_LENGTH
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def _hash_with_salt(code: str, salt: str) -> str:
    h = hashlib.sha256()
    h.update(f"{code}{salt}{settings.OTP_HASH_SECRET}".encode("utf-8"))
    return h.hexdigest()


def hash_code(code: str) -> str:
    """Store form of a one-time code: "hash|salt"."""
    salt = secrets.token_hex(8)
    return f"{_hash_with_salt(code, salt)}|{salt}"


def verify_code(candidate: str, stored: str) -> bool:
    if not stored or "|" not in stored:
        return False
    stored_hash, salt = stored.split("|", 1)
    candidate_hash = _hash_with_salt(str(candidate).strip(), salt)
    return hmac.compare_digest(candidate_hash, stored_hash)


def generate_random_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


_PASSWORD_CHARSET = string.ascii_letters + string.digits + "@$!%*?&"


def generate_random_password(length: int = 12) -> str:
    # one of each class so generated passwords pass the strength check
    picks = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice("@$!%*?&"),
    ]
    picks += [secrets.choice(_PASSWORD_CHARSET) for _ in range(max(length - len(picks), 0))]
    secrets.SystemRandom().shuffle(picks)
    return "".join(picks)

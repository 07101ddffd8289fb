import jwt
from datetime import datetime, timedelta, timezone
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from cuehall.config import settings

ph = PasswordHasher()

def hash_pw(p: str) -> str:
    return ph.hash(p)

def verify_pw(hashv: str, p: str) -> bool:
    try:
        ph.verify(hashv, p)
        return True
    except (VerificationError, InvalidHashError):
        return False

def create_token(sub: str, role: str | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "iss": settings.JWT_ISS,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXP_MIN),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.APP_SECRET, algorithm=settings.JWT_ALG)

def decode_token(token: str) -> dict:
    """Raises ``jwt.PyJWTError`` on a bad signature, issuer or expiry."""
    return jwt.decode(
        token,
        settings.APP_SECRET,
        algorithms=[settings.JWT_ALG],
        issuer=settings.JWT_ISS,
        options={"require": ["sub", "iss", "exp"]},
    )

import secrets
import string
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from ..config import settings
from ..domain.entities import TokenPayload
from ..domain.errors import ConfigurationError, TokenExpiredError, TokenInvalidError

# plain bcrypt stays verifiable but is deprecated; it ignores bytes past 72
pwd = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
    bcrypt_sha256__rounds=settings.BCRYPT_ROUNDS,
    bcrypt_sha256__truncate_error=False,
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)

    def verify(self, plain: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return pwd.verify(plain, hashed)
        except ValueError:
            # unrecognised hash format
            return False


def _secret() -> str:
    if not settings.JWT_SECRET:
        raise ConfigurationError("JWT_SECRET is not defined in environment variables")
    return settings.JWT_SECRET


def create_access_token(user_id: int, email: str, role: str, minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes if minutes is not None else settings.JWT_EXPIRES_MINUTES)
    payload = {"userId": user_id, "email": email, "role": role, "iat": now, "exp": exp}
    return jwt.encode(payload, _secret(), algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> TokenPayload:
    """Verify signature and expiry, returning the token claims.

    Raises `TokenExpiredError` for an expired token and `TokenInvalidError`
    for anything malformed, tampered with or missing required claims.
    """
    secret = _secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Token expired") from e
    except JWTError as e:
        raise TokenInvalidError("Invalid token") from e

    user_id = payload.get("userId")
    email = payload.get("email")
    role = payload.get("role")
    if not isinstance(user_id, int) or not email or not role:
        raise TokenInvalidError("Invalid token payload")
    return TokenPayload(user_id=user_id, email=email, role=role,
                        exp=payload.get("exp"), iat=payload.get("iat"))


def generate_temp_password(length: int = 12) -> str:
    """Random password that satisfies the account password policy."""
    alphabet = string.ascii_letters + string.digits
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if (any(c.islower() for c in password)
                and any(c.isupper() for c in password)
                and any(c.isdigit() for c in password)):
            return password

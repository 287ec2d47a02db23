import datetime
import logging
import secrets
from typing import Callable, Optional, Protocol

from jose import JWTError, jwt
from passlib.crypto.digest import pbkdf2_hmac

from src.config import settings
from src.errors import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# PUBLIC_INTERFACE
class HashProvider(Protocol):
    """Anything that can turn a secret and a salt into a stable digest."""

    def encode(self, value: str, salt: str) -> str: ...


# PUBLIC_INTERFACE
class Pbkdf2HashProvider:
    """PBKDF2-HMAC digest, hex encoded. SHA-512 with 50 000 rounds and a 512-byte key by default."""

    def __init__(self, digest: str = "sha512", rounds: Optional[int] = None, key_length: Optional[int] = None):
        self.digest = digest
        self.rounds = rounds or settings.hash_iterations
        self.key_length = key_length or settings.hash_key_length

    def encode(self, value: str, salt: str) -> str:
        return pbkdf2_hmac(self.digest, value, salt, self.rounds, self.key_length).hex()


# PUBLIC_INTERFACE
def generate_salt() -> str:
    """Fresh random salt for a new credential."""
    return secrets.token_hex(16)


# PUBLIC_INTERFACE
def verify_password(hash_provider: HashProvider, plain_password: str, salt: str, hashed_password: str) -> bool:
    """Verify password against stored digest in constant time."""
    return secrets.compare_digest(hash_provider.encode(plain_password, salt), hashed_password)


# PUBLIC_INTERFACE
def create_access_token(
    user_id: str,
    expires_delta: Optional[datetime.timedelta] = None,
    now: Optional[datetime.datetime] = None,
) -> str:
    """Generate a signed JWT access token for the user."""
    issued = now or utcnow()
    expire = issued + (expires_delta or datetime.timedelta(minutes=settings.access_token_expire_minutes))
    claims = {"sub": user_id, "exp": int(expire.timestamp())}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# PUBLIC_INTERFACE
class SessionValidator:
    """
    Proves who is calling and that their token is still alive.

    Pure computation: verifies the signature and structure, then compares
    the ``exp`` claim with the clock, and returns the ``sub`` claim. It
    never touches the database.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        clock: Clock = utcnow,
    ):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.clock = clock

    def validate(self, authorization: Optional[str]) -> str:
        """Return the user id carried by a valid, unexpired bearer token."""
        token = (authorization or "").strip()
        if token[:7].lower() == "bearer ":
            token = token[7:].strip()
        if not token:
            raise InvalidTokenError()

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise InvalidTokenError() from exc

        user_id = payload.get("sub")
        expires_at = payload.get("exp")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidTokenError()
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise InvalidTokenError()

        expiry = datetime.datetime.fromtimestamp(expires_at, tz=datetime.timezone.utc)
        if expiry <= self.clock():
            raise TokenExpiredError()
        return user_id

"""Runtime configuration for the notes backend, read from the environment."""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env for DB/JWT settings
load_dotenv()


# PUBLIC_INTERFACE
class Settings(BaseModel):
    """Application settings. Defaults come from environment variables."""

    # Database
    database_url: Optional[str] = Field(default_factory=lambda: os.environ.get("DATABASE_URL"))
    db_pool_size: int = Field(default_factory=lambda: int(os.environ.get("DB_POOL_SIZE", 5)))
    db_pool_timeout: float = Field(default_factory=lambda: float(os.environ.get("DB_POOL_TIMEOUT", 30)))
    db_echo: bool = Field(default_factory=lambda: os.environ.get("DB_ECHO", "false").lower() == "true")

    # Security
    jwt_secret_key: str = Field(default_factory=lambda: os.environ.get("JWT_SECRET_KEY", "notsosecret"))
    jwt_algorithm: str = Field(default_factory=lambda: os.environ.get("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = Field(
        default_factory=lambda: int(os.environ.get("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 60))
    )
    hash_iterations: int = Field(default_factory=lambda: int(os.environ.get("HASH_ITERATIONS", 50000)))
    hash_key_length: int = Field(default_factory=lambda: int(os.environ.get("HASH_KEY_LENGTH", 512)))

    # Logging
    log_level: str = Field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))


settings = Settings()


# PUBLIC_INTERFACE
def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

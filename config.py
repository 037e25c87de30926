# config.py - runtime settings for the task backend
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_bool(value, default=False):
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    environment: str = "development"
    port: int = 5000

    # JWT
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 24 * 60

    # Database
    database_url: str = "sqlite:///./db/tasks.db"
    db_pool_size: int = 10
    db_connect_retries: int = 5
    db_retry_delay_seconds: float = 5

    # Password hashing work factor
    bcrypt_rounds: int = 10

    # HTTP
    cors_origin: str = "http://localhost:8081"
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 15 * 60

    task_unique_titles: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"
    # Daily-rotated error and combined log files go here; None disables them
    log_dir: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        jwt_secret = os.environ.get("JWT_SECRET")
        if not jwt_secret:
            raise RuntimeError(
                "JWT_SECRET is not set. Please configure it in the environment."
            )

        environment = os.environ.get("ENVIRONMENT", "development")
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            database_url = cls.database_url

        return cls(
            jwt_secret=jwt_secret,
            environment=environment,
            port=int(os.environ.get("PORT", 5000)),
            jwt_algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
            jwt_expires_minutes=int(os.environ.get("JWT_EXPIRES_MINUTES", 24 * 60)),
            database_url=database_url,
            db_pool_size=int(os.environ.get("DB_POOL_SIZE", 10)),
            db_connect_retries=int(os.environ.get("DB_CONNECT_RETRIES", 5)),
            db_retry_delay_seconds=float(os.environ.get("DB_RETRY_DELAY_SECONDS", 5)),
            bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", 10)),
            cors_origin=os.environ.get("CORS_ORIGIN", "http://localhost:8081"),
            rate_limit_max=int(os.environ.get("RATE_LIMIT_MAX", 100)),
            rate_limit_window_seconds=int(
                os.environ.get("RATE_LIMIT_WINDOW_SECONDS", 15 * 60)
            ),
            task_unique_titles=_env_bool(os.environ.get("TASK_UNIQUE_TITLES")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_format=os.environ.get(
                "LOG_FORMAT", "json" if environment == "production" else "console"
            ),
            log_dir=os.environ.get("LOG_DIR", "logs") or None,
        )

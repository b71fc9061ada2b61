"""Runtime configuration for the app (read from the environment, overridable in tests)."""
import os
from typing import NamedTuple, Optional, Tuple


class Settings(NamedTuple):
    environment: str
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    jwt_audience: Optional[str]
    allowed_origins: Tuple[str, ...]
    log_level: str

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5000,http://localhost:3000")
    return Settings(
        environment=os.getenv("APP_ENV", "production"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./marketplace.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_audience=os.getenv("JWT_AUDIENCE") or None,
        allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def set_environment(value: str):
    global state
    state = state._replace(environment=value)

"""Configuration management with environment variable support."""

import os
import secrets
from dataclasses import dataclass, field


def _parse_cors_origins() -> list[str]:
    """Parse CORS_ORIGINS environment variable."""
    origins = os.getenv("CORS_ORIGINS", "http://localhost:8000")
    return [o.strip() for o in origins.split(",") if o.strip()]


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration."""

    allowed_origins: list[str] = field(default_factory=_parse_cors_origins)
    allow_credentials: bool = True
    allow_methods: list[str] = field(default_factory=lambda: ["*"])
    allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limiting configuration."""

    enabled: bool = field(
        default_factory=lambda: os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    )
    requests_per_minute: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_RPM", "60"))
    )


@dataclass(frozen=True)
class SecurityConfig:
    """Security configuration."""

    secret_key: str = field(
        default_factory=lambda: os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    )
    # Lifetime of the signed token handed out on join
    player_token_ttl: int = field(
        default_factory=lambda: int(os.getenv("PLAYER_TOKEN_TTL", "86400"))
    )


@dataclass(frozen=True)
class RedisConfig:
    """Redis connection configuration."""

    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    password: str | None = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))

    @property
    def url(self) -> str:
        """Build Redis connection URL."""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
    )


@dataclass(frozen=True)
class TableConfig:
    """Default table configuration."""

    min_bet: int = field(default_factory=lambda: _env_int("BJ_MIN_BET", 10))
    max_bet: int = field(default_factory=lambda: _env_int("BJ_MAX_BET", 1000))
    # Buy-in limits default to 8x / 40x the minimum bet
    min_buy_in: int = field(
        default_factory=lambda: _env_int("BJ_MIN_BUY_IN", _env_int("BJ_MIN_BET", 10) * 8)
    )
    max_buy_in: int = field(
        default_factory=lambda: _env_int("BJ_MAX_BUY_IN", _env_int("BJ_MIN_BET", 10) * 40)
    )
    min_seats: int = field(default_factory=lambda: _env_int("BJ_MIN_SEATS", 1))
    max_seats: int = field(default_factory=lambda: _env_int("BJ_MAX_SEATS", 7))
    deck_count: int = field(default_factory=lambda: _env_int("BJ_DECK_COUNT", 6))
    reshuffle_threshold: int = field(
        default_factory=lambda: _env_int("BJ_RESHUFFLE_THRESHOLD", 52)
    )

    betting_timeout: float = field(default_factory=lambda: _env_float("BJ_BETTING_TIMEOUT", 45.0))
    action_timeout: float = field(default_factory=lambda: _env_float("BJ_ACTION_TIMEOUT", 45.0))
    action_timeout_min: float = 15.0
    action_timeout_max: float = 120.0
    rebuy_timeout: float = field(default_factory=lambda: _env_float("BJ_REBUY_TIMEOUT", 60.0))
    rebuy_timeout_min: float = 30.0
    rebuy_timeout_max: float = 600.0
    step_delay: float = field(default_factory=lambda: _env_float("BJ_STEP_DELAY", 0.0))

    rebuy_mode: str = field(default_factory=lambda: os.getenv("BJ_REBUY_MODE", "on").lower())
    auto_clean_hands: bool = field(
        default_factory=lambda: os.getenv("BJ_AUTO_CLEAN_HANDS", "false").lower() == "true"
    )
    timeline_max_entries: int = 30
    starting_bankroll: int = field(
        default_factory=lambda: _env_int("BJ_STARTING_BANKROLL", 5000)
    )


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    redis: RedisConfig = field(default_factory=RedisConfig)
    table: TableConfig = field(default_factory=TableConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global configuration instance
config = AppConfig()

# osoul/config.py
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv
from fastapi import Request

load_dotenv()

CORS_POLICIES = {"wildcard", "echo", "allowlist"}
PASSWORD_POLICIES = {"strict", "legacy"}


def _split_csv(raw: str) -> List[str]:
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def normalize_database_url(url: str) -> str:
    # Heroku/Supabase style URLs still come as 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass
class Settings:
    env: str = "dev"
    database_url: str = "sqlite:///./osoul.db"

    # JWT
    secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24

    # Policies
    cors_policy: str = "wildcard"
    cors_origins: List[str] = field(default_factory=list)
    password_policy: str = "strict"
    legacy_fallback_password: str = "password123"

    # Report defaults (SAR)
    default_collector_target: float = 150000.0
    default_daily_target: float = 150000.0
    default_trend_target: float = 400000.0

    log_level: str = "INFO"

    def __post_init__(self):
        self.env = (self.env or "dev").lower()
        self.database_url = normalize_database_url(self.database_url)
        self.cors_policy = (self.cors_policy or "wildcard").lower()
        self.password_policy = (self.password_policy or "strict").lower()

        if self.cors_policy not in CORS_POLICIES:
            raise RuntimeError(f"CORS_POLICY must be one of {sorted(CORS_POLICIES)}")
        if self.password_policy not in PASSWORD_POLICIES:
            raise RuntimeError(f"PASSWORD_POLICY must be one of {sorted(PASSWORD_POLICIES)}")

        if self.env == "prod":
            # In prod the key is mandatory and long enough (>=32 bytes)
            if not self.secret_key or len(self.secret_key) < 32:
                raise RuntimeError("SECRET_KEY required in prod (>=32 bytes)")
            if self.cors_policy == "wildcard":
                raise RuntimeError('In prod CORS_POLICY cannot be "wildcard"; use "allowlist" or "echo".')
        if self.cors_policy == "allowlist" and "*" in self.cors_origins:
            raise RuntimeError('CORS_ORIGINS cannot contain "*" with the allowlist policy.')

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls.__dataclass_fields__
        return cls(
            env=os.getenv("ENV", defaults["env"].default),
            database_url=os.getenv("DATABASE_URL", defaults["database_url"].default),
            secret_key=os.getenv("SECRET_KEY", defaults["secret_key"].default),
            jwt_algorithm=os.getenv("JWT_ALGO", "HS256"),
            jwt_expire_minutes=int(os.getenv("JWT_MINS", str(60 * 24))),
            cors_policy=os.getenv("CORS_POLICY", "wildcard"),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "")),
            password_policy=os.getenv("PASSWORD_POLICY", "strict"),
            legacy_fallback_password=os.getenv("LEGACY_FALLBACK_PASSWORD", "password123"),
            default_collector_target=float(os.getenv("DEFAULT_COLLECTOR_TARGET", "150000")),
            default_daily_target=float(os.getenv("DEFAULT_DAILY_TARGET", "150000")),
            default_trend_target=float(os.getenv("DEFAULT_TREND_TARGET", "400000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

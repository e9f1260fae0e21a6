import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

TRUTHY = {"1", "true", "yes", "on"}


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _bool_env(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUTHY


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read once at startup."""

    db_host: str = "127.0.0.1"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = "root"
    db_name: str = "event_management"
    db_pool_size: int = 5

    default_page_size: int = 15
    max_page_size: int = 100

    init_schema: bool = True
    expose_error_details: bool = True
    allowed_origins: str = "*"
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8081

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            env = os.environ
        defaults = cls()
        return cls(
            db_host=env.get("DB_HOST", defaults.db_host),
            db_port=_int_env(env, "DB_PORT", defaults.db_port),
            db_user=env.get("DB_USER", defaults.db_user),
            db_password=env.get("DB_PASS", defaults.db_password),
            db_name=env.get("DB_NAME", defaults.db_name),
            db_pool_size=_int_env(env, "DB_POOL_SIZE", defaults.db_pool_size),
            default_page_size=_int_env(env, "DEFAULT_PAGE_SIZE", defaults.default_page_size),
            max_page_size=_int_env(env, "MAX_PAGE_SIZE", defaults.max_page_size),
            init_schema=_bool_env(env, "INIT_SCHEMA", defaults.init_schema),
            expose_error_details=_bool_env(env, "EXPOSE_ERROR_DETAILS", defaults.expose_error_details),
            allowed_origins=env.get("ALLOWED_ORIGINS", defaults.allowed_origins),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
            host=env.get("HOST", defaults.host),
            port=_int_env(env, "PORT", defaults.port),
        )

    @property
    def origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

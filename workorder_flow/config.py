"""Runtime settings, read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import FrozenSet, List, Optional, Tuple

from .visibility import VisibilityPolicy

DEFAULT_DB_PATH = "workorder.sqlite3"
DEFAULT_SWEEP_TIME = time(18, 0)


def _split_csv(raw: str) -> List[str]:
    return [value.strip() for value in raw.split(",") if value.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return max(int(raw.strip()), 1)
    except ValueError:
        return default


def _parse_time(raw: Optional[str], default: time) -> time:
    if not raw:
        return default
    try:
        return datetime.strptime(raw.strip(), "%H:%M").time()
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    db_path: str = DEFAULT_DB_PATH
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    sweep_enabled: bool = True
    sweep_time: time = DEFAULT_SWEEP_TIME
    sweep_timezone: str = "UTC"
    default_page_size: int = 20
    max_page_size: int = 100
    assembly_sector: str = "Assembly"
    assembly_upstream_sectors: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"Electrical", "Mechanical"})
    )
    unfiltered_roles: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"PCP", "Warehouse", "ADMIN"})
    )
    log_level: str = "INFO"
    cors_allow_origins: Tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        upstream = os.getenv("ASSEMBLY_UPSTREAM_SECTORS")
        unfiltered = os.getenv("UNFILTERED_ROLES")
        cors_origins = os.getenv("CORS_ALLOW_ORIGINS")
        return cls(
            db_path=os.getenv("WORKORDER_DB_PATH", defaults.db_path),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            sweep_enabled=_env_bool("SWEEP_ENABLED", defaults.sweep_enabled),
            sweep_time=_parse_time(os.getenv("SWEEP_TIME"), defaults.sweep_time),
            sweep_timezone=os.getenv("SWEEP_TIMEZONE", defaults.sweep_timezone),
            default_page_size=_env_int("DEFAULT_PAGE_SIZE", defaults.default_page_size),
            max_page_size=_env_int("MAX_PAGE_SIZE", defaults.max_page_size),
            assembly_sector=os.getenv("ASSEMBLY_SECTOR", defaults.assembly_sector),
            assembly_upstream_sectors=(
                frozenset(_split_csv(upstream))
                if upstream is not None
                else defaults.assembly_upstream_sectors
            ),
            unfiltered_roles=(
                frozenset(_split_csv(unfiltered))
                if unfiltered is not None
                else defaults.unfiltered_roles
            ),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            cors_allow_origins=(
                tuple(_split_csv(cors_origins))
                if cors_origins is not None
                else defaults.cors_allow_origins
            ),
        )

    def visibility_policy(self) -> VisibilityPolicy:
        return VisibilityPolicy(
            assembly_sector=self.assembly_sector,
            upstream_sectors=self.assembly_upstream_sectors,
            unfiltered_roles=self.unfiltered_roles,
        )


__all__ = ["Settings", "DEFAULT_DB_PATH", "DEFAULT_SWEEP_TIME"]

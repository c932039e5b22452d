# birdsync:config.py

# MIT License
#
# Copyright (c) 2025 Jonas Waldeck
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND.

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from birdsync.errors import ConfigError

USER_AGENT = "birdsync/0.2"

# Formats accepted for --after / --before
BOUND_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


@dataclass(frozen=True)
class Config:
    repo_root: Path

    base_url: str = "https://api.inaturalist.org/v2"
    ml_asset_base_url: str = "https://cdn.download.ams.birds.cornell.edu/api/v2/asset"

    user_id: str = ""
    api_token: str = ""

    log_level: str = "INFO"
    log_to_console: bool = True
    logs_dir: Path = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        def _s(env_key: str, default: str) -> str:
            return os.getenv(env_key, default).strip()

        object.__setattr__(self, "base_url", _s("INAT_BASE_URL", self.base_url))
        object.__setattr__(self, "ml_asset_base_url", _s("ML_ASSET_BASE_URL", self.ml_asset_base_url))
        object.__setattr__(self, "user_id", _s("INAT_USER_ID", self.user_id))
        object.__setattr__(self, "api_token", _s("INAT_API_TOKEN", self.api_token))
        object.__setattr__(self, "log_level", _s("BIRDSYNC_LOG_LEVEL", self.log_level).upper())
        object.__setattr__(
            self, "log_to_console", _s("BIRDSYNC_LOG_CONSOLE", "1" if self.log_to_console else "0") == "1"
        )

        raw_logs = os.getenv("BIRDSYNC_LOGS_DIR", str(self.logs_dir or self.repo_root / "logs"))
        object.__setattr__(self, "logs_dir", Path(raw_logs).expanduser().resolve())

    def require_credentials(self) -> None:
        if not self.user_id:
            raise ConfigError("Missing INAT_USER_ID")
        if not self.api_token:
            raise ConfigError("Missing INAT_API_TOKEN (copy it from https://www.inaturalist.org/users/api_token)")


def parse_bound(s: str) -> datetime:
    """Parse a date or date+time given on the command line."""
    s = (s or "").strip()
    for fmt in BOUND_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    raise ConfigError(f"invalid date/time {s!r}: want YYYY-MM-DD or 'YYYY-MM-DD HH:MM:SS'")


@dataclass(frozen=True)
class SyncOptions:
    """Knobs that change how records are classified and acted on."""

    after: Optional[datetime] = None
    before: Optional[datetime] = None
    fuzzy: bool = False
    verifiable: bool = False
    dry_run: bool = False

    def validate(self) -> None:
        if self.after is not None and self.before is not None and self.after > self.before:
            raise ConfigError(
                f"--after {self.after:%Y-%m-%d %H:%M:%S} is later than --before {self.before:%Y-%m-%d %H:%M:%S}; "
                "no records could match"
            )

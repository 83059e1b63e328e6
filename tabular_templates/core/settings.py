"""
Runtime settings, read from the environment.

Environment variables:
    TEMPLATES_TEMP_DIR                : root of the template cache (default: <tempdir>/tabular-templates)
    TEMPLATES_DATA_DIR                : root of user data (default: ~/.tabular-templates)
    TEMPLATES_POLICY_FILE             : optional YAML/JSON policy file
    TEMPLATES_PREVIEW_ROWS            : default preview sample size (default: 10)
    TEMPLATES_ROLLBACK_ON_SAVE_FAILURE: 1/true/yes to undo local changes after a failed save
"""
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

TEMPLATES_SUBPATH = Path("ManageDates") / "Templates"

_TRUTHY = ("1", "true", "yes")


def _env_path(name: str, default: Path) -> Path:
    raw = (os.getenv(name) or "").strip()
    return Path(raw).expanduser() if raw else default


@dataclass(frozen=True)
class TemplateSettings:
    temp_dir: Path
    data_dir: Path
    policy_file: Optional[Path] = None
    preview_rows: int = 10
    rollback_on_save_failure: bool = False

    @property
    def cache_path(self) -> Path:
        return self.temp_dir / TEMPLATES_SUBPATH

    @property
    def user_path(self) -> Path:
        """Override directory; when present it replaces the built-in templates."""
        return self.data_dir / TEMPLATES_SUBPATH

    @classmethod
    def from_env(cls) -> "TemplateSettings":
        temp_dir = _env_path("TEMPLATES_TEMP_DIR", Path(tempfile.gettempdir()) / "tabular-templates")
        data_dir = _env_path("TEMPLATES_DATA_DIR", Path.home() / ".tabular-templates")

        policy_raw = (os.getenv("TEMPLATES_POLICY_FILE") or "").strip()
        policy_file = Path(policy_raw).expanduser() if policy_raw else None

        preview_rows = int((os.getenv("TEMPLATES_PREVIEW_ROWS") or "10").strip())
        rollback = (os.getenv("TEMPLATES_ROLLBACK_ON_SAVE_FAILURE") or "0").strip().lower() in _TRUTHY

        return cls(
            temp_dir=temp_dir,
            data_dir=data_dir,
            policy_file=policy_file,
            preview_rows=max(0, preview_rows),
            rollback_on_save_failure=rollback,
        )

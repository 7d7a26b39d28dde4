from __future__ import annotations

import logging.config
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .autosave import AUTOSAVE_DELAY_SECONDS
from .damage import PhotoPolicy

ENV_PREFIX = "COLLECTION_"


@dataclass
class Settings:
    database_path: Path = Path("vehicle_collections.db")
    drafts_dir: Path = Path("drafts")
    upload_dir: Path = Path("uploads")
    autosave_delay: float = AUTOSAVE_DELAY_SECONDS
    photo_policy: PhotoPolicy = PhotoPolicy.REQUIRED
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        def value(name: str) -> Optional[str]:
            raw = env.get(f"{ENV_PREFIX}{name}")
            return raw.strip() if raw and raw.strip() else None

        delay = value("AUTOSAVE_DELAY")
        try:
            autosave_delay = float(delay) if delay else defaults.autosave_delay
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}AUTOSAVE_DELAY must be a number of seconds") from None
        if autosave_delay < 0:
            raise ValueError(f"{ENV_PREFIX}AUTOSAVE_DELAY cannot be negative")

        policy = value("PHOTO_POLICY")
        return cls(
            database_path=Path(value("DATABASE") or defaults.database_path),
            drafts_dir=Path(value("DRAFTS_DIR") or defaults.drafts_dir),
            upload_dir=Path(value("UPLOAD_DIR") or defaults.upload_dir),
            autosave_delay=autosave_delay,
            photo_policy=PhotoPolicy(policy.lower()) if policy else defaults.photo_policy,
            log_level=(value("LOG_LEVEL") or defaults.log_level).upper(),
        )

    @classmethod
    def for_directory(cls, root: Path, **overrides) -> "Settings":
        """Settings with every file kept under ``root``."""
        options = {
            "database_path": root / "vehicle_collections.db",
            "drafts_dir": root / "drafts",
            "upload_dir": root / "uploads",
        }
        options.update(overrides)
        return cls(**options)


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "level": level,
                },
            },
            "loggers": {
                "backend.collection": {
                    "handlers": ["console"],
                    "level": level,
                    "propagate": False,
                },
            },
        }
    )

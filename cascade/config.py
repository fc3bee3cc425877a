"""Centralised settings for the Cascade core.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from the package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CASCADE_WORKSPACE", Path.home() / ".cascade_data")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CASCADE_CLI_DIR", Path.home() / ".cascade_cli")
        )
    )
    inbox_name: str = field(
        default_factory=lambda: os.environ.get("INBOX_NAME", "Inbox")
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "cascade.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Relay / undo windows (seconds)
    # ------------------------------------------------------------------
    relay_ttl: float = field(
        default_factory=lambda: float(os.environ.get("RELAY_TTL", "5.0"))
    )
    undo_ttl: float = field(
        default_factory=lambda: float(os.environ.get("UNDO_TTL", "3.0"))
    )

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    favicon_service: str = field(
        default_factory=lambda: os.environ.get(
            "FAVICON_SERVICE",
            "https://www.google.com/s2/favicons?domain={host}&sz=128",
        )
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Apply a basic root logging configuration (idempotent)."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# Module-level singleton — import this everywhere:
#   from cascade.config import settings
settings = Settings()

"""Centralised settings for the flowgraph engine.

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
            os.environ.get("FLOWGRAPH_WORKSPACE", Path.home() / ".flowgraph_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "flowgraph.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("FLOWGRAPH_LOG_LEVEL", "INFO")
    )

    # ------------------------------------------------------------------
    # Graph limits
    # ------------------------------------------------------------------
    transform_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("FLOWGRAPH_TRANSFORM_MAX_DEPTH", "100"))
    )
    clone_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("FLOWGRAPH_CLONE_MAX_DEPTH", "1"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Install a root handler for entry points (API app, CLI).

    Library modules only ever call ``logging.getLogger(__name__)``.
    """
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# Module-level singleton, import this everywhere:
#   from flowgraph.config import settings
settings = Settings()

"""
FQL configuration.

Each project identity maps to one service-account JSON file inside a
projects directory: <projects_dir>/<project>.json. The directory, the
default project and the log level can come from the environment:

    FQL_PROJECTS_DIR   projects directory (default: ./projects)
    FQL_PROJECT        default project identity
    FQL_LOG_LEVEL      log level name (default: WARNING)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from fql.errors import StoreConnectionError

logger = logging.getLogger(__name__)

DEFAULT_PROJECTS_DIR = "projects"


@dataclass(frozen=True)
class FQLConfig:
    """Where credentials live and which project to use by default."""

    projects_dir: Path = field(default_factory=lambda: Path(DEFAULT_PROJECTS_DIR))
    default_project: Optional[str] = None
    log_level: str = "WARNING"

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "FQLConfig":
        """Build a config from FQL_* environment variables."""
        env = os.environ if environ is None else environ
        return FQLConfig(
            projects_dir=Path(env.get("FQL_PROJECTS_DIR", DEFAULT_PROJECTS_DIR)),
            default_project=env.get("FQL_PROJECT") or None,
            log_level=env.get("FQL_LOG_LEVEL", "WARNING").upper(),
        )

    def credentials_path(self, project: str) -> Path:
        """Location of a project's service-account file."""
        if not project or "/" in project or "\\" in project or project.startswith("."):
            raise StoreConnectionError(project, "invalid project identity")
        return self.projects_dir / f"{project}.json"

    def load_credentials(self, project: str) -> Dict[str, Any]:
        """
        Read a project's service-account JSON.

        Raises:
            StoreConnectionError: If the file is missing, unreadable or not a JSON object
        """
        path = self.credentials_path(project)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise StoreConnectionError(project, f"no credentials at {path}", e) from e
        except (OSError, json.JSONDecodeError) as e:
            raise StoreConnectionError(project, f"unreadable credentials at {path}: {e}", e) from e

        if not isinstance(data, dict):
            raise StoreConnectionError(project, f"credentials at {path} are not a JSON object")
        logger.debug("Loaded credentials for %s from %s", project, path)
        return data

    def project_provider(self):
        """A project provider returning default_project."""

        def current_project() -> str:
            if not self.default_project:
                raise StoreConnectionError("", "no current project configured (set FQL_PROJECT)")
            return self.default_project

        return current_project


def configure_logging(level: str = "WARNING") -> None:
    """Install a basic handler for the fql loggers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("fql").setLevel(getattr(logging, level.upper(), logging.WARNING))

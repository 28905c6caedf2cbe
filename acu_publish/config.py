"""
Run configuration for the customization publisher.

Two sources feed one immutable `PublishConfig`:

    - `config/projects.yaml`: the static catalogue of customization projects,
      the environment flag that enables each one and the GitHub repository
      whose tags version it.
    - Workflow environment variables: Acumatica instance URL and credentials,
      validate-only mode, the tag pattern and the per-project enable flags.

Example catalogue:

    ```yaml
    projects:
      - flag: "USSFence"
        name: "USSFence"
        repository: "USSBI/acumatica-uss-fence"
    ```
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict

from .models import Credentials
from .utils import env_flag

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "projects.yaml"
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_LOCALE = "EN-US"


class ProjectEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    flag: str
    name: str
    repository: str
    enabled: bool = False


class PublishConfig(BaseModel):
    """Everything a publish run needs, loaded once at start."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str
    credentials: Credentials
    validate_only: bool = False
    tag_pattern: re.Pattern
    projects: List[ProjectEntry]
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_token: str = ""
    summary_path: Optional[str] = None
    environment_name: str = ""

    @property
    def repo_mapping(self) -> Dict[str, str]:
        """Repository to publish name, in catalogue order."""
        return {p.repository: p.name for p in self.projects}

    @property
    def target_names(self) -> List[str]:
        """Publish names of the projects enabled for this run."""
        return [p.name for p in self.projects if p.enabled]


def load_projects_config(config_path: Path) -> List[Dict[str, Any]]:
    """Load the project catalogue and validate its shape."""
    if not config_path.exists():
        raise FileNotFoundError(f"Projects config not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    projects = data.get("projects", [])
    if not isinstance(projects, list) or not projects:
        raise ValueError("Config 'projects' must be a non-empty list")

    seen = set()
    for entry in projects:
        if not isinstance(entry, dict):
            raise ValueError(f"Project entry must be a mapping: {entry}")
        missing = [k for k in ("flag", "name", "repository") if not entry.get(k)]
        if missing:
            raise ValueError(f"Project entry missing required fields {missing}: {entry}")
        # one logical project per repository
        if entry["repository"] in seen:
            raise ValueError(f"Repository listed more than once: {entry['repository']}")
        seen.add(entry["repository"])

    return projects


def compile_tag_pattern(raw: str) -> re.Pattern:
    try:
        return re.compile(raw)
    except re.error as e:
        raise ValueError(f"TAG_PATTERN is not a valid regular expression: {raw!r} ({e})") from e


def load_config(environ: Mapping[str, str], config_path: Path = DEFAULT_CONFIG_PATH) -> PublishConfig:
    """Build the run configuration from the catalogue file and environment."""
    required = ["AC_BASE_URL", "TAG_PATTERN"]
    missing = [name for name in required if not (environ.get(name) or "").strip()]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    entries = load_projects_config(config_path)
    projects = [
        ProjectEntry(
            flag=str(e["flag"]),
            name=str(e["name"]),
            repository=str(e["repository"]),
            enabled=(environ.get(str(e["flag"])) or "").strip().lower() == "true",
        )
        for e in entries
    ]

    credentials = Credentials(
        name=environ.get("AC_USERNAME", ""),
        password=environ.get("AC_PASSWORD", ""),
        tenant=environ.get("AC_TENANT", ""),
        branch=environ.get("AC_BRANCH", ""),
        locale=DEFAULT_LOCALE,
    )

    return PublishConfig(
        base_url=environ["AC_BASE_URL"].strip().rstrip("/"),
        credentials=credentials,
        validate_only=env_flag(environ.get("VALIDATE_ONLY")),
        tag_pattern=compile_tag_pattern(environ["TAG_PATTERN"]),
        projects=projects,
        github_api_url=(environ.get("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL).rstrip("/"),
        github_token=environ.get("GITHUB_TOKEN", ""),
        summary_path=environ.get("GITHUB_STEP_SUMMARY") or None,
        environment_name=environ.get("ENVIRONMENT_NAME", ""),
    )

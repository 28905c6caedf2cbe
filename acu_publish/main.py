"""
Acumatica Customization Publisher - GitHub Tag Driven Deployment

This module drives one publish run against an Acumatica instance: it resolves
the latest release tag of every configured customization repository, swaps the
matching projects in the published set for their tag-qualified builds and asks
the instance to publish the result.

Run Flow:
    1. Login with the configured credentials and keep the session cookies
    2. Read the currently published customization projects
    3. Resolve the latest matching GitHub tag per repository (1s apart)
    4. Qualify enabled project names with their tags (`USSFence[v2024.03.07]`)
    5. Replace stale published builds of those projects with the new ones
    6. PublishBegin / PublishEnd, optionally validation-only
    7. Append the published list to the GitHub Actions step summary
    8. Logout, on every exit path

Run States:
    NOT_LOGGED_IN -> LOGGED_IN -> PUBLISH_REQUESTED -> LOGGED_OUT
    Any failure after login attempt moves to FAILED, then LOGGED_OUT.
    The process exit code is 0 on success and 1 on any failure.

Inputs:
    - config/projects.yaml: project catalogue (flag, name, repository)
    - Environment: AC_BASE_URL, AC_USERNAME, AC_PASSWORD, AC_TENANT, AC_BRANCH,
      VALIDATE_ONLY, TAG_PATTERN, GITHUB_TOKEN, GITHUB_STEP_SUMMARY,
      ENVIRONMENT_NAME and one enable flag per project

Usage:
    ```bash
    TAG_PATTERN='^v\\d+\\.\\d+\\.\\d+$' USSFence=true python -m acu_publish.main --preview
    ```
"""

import argparse
import asyncio
import enum
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_CONFIG_PATH, PublishConfig, load_config
from .github_tags import GitHubTagClient, process_repositories
from .models import PlatformSession
from .platform_client import AcumaticaClient, format_publish_summary, write_step_summary
from .replacer import build_publish_list, replace_names_with_latest_tags
from .utils import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


class RunState(str, enum.Enum):
    NOT_LOGGED_IN = "NotLoggedIn"
    LOGGED_IN = "LoggedIn"
    PUBLISH_REQUESTED = "PublishRequested"
    FAILED = "Failed"
    LOGGED_OUT = "LoggedOut"


class PublishRun:
    """
    One end-to-end publish run.

    The run owns its configuration and both API clients; the session returned
    by login is threaded through every platform call. `history` keeps every
    state the run passed through, which makes the flow easy to assert on.

    Example:
        ```python
        config = load_config(os.environ)
        run = PublishRun(config, AcumaticaClient(config.base_url), GitHubTagClient())
        exit_code = asyncio.run(run.execute())
        ```
    """

    def __init__(
        self,
        config: PublishConfig,
        platform: AcumaticaClient,
        tags: GitHubTagClient,
        delay_seconds: float = 1.0,
    ) -> None:
        self.config = config
        self.platform = platform
        self.tags = tags
        self.delay_seconds = delay_seconds
        self.state = RunState.NOT_LOGGED_IN
        self.history: List[RunState] = [RunState.NOT_LOGGED_IN]
        self.session: Optional[PlatformSession] = None
        self.publish_list: List[str] = []

    def _transition(self, state: RunState) -> None:
        logger.debug(f"Run state {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def resolve_publish_list(self) -> List[str]:
        """Compute the project list to publish from the live instance and GitHub."""
        published = await self.platform.get_published(self.session)
        published_names = [p.name for p in published]
        logger.info(f"Published Projects: {published_names}")

        results = await process_repositories(
            self.tags,
            list(self.config.repo_mapping.keys()),
            self.config.tag_pattern,
            delay_seconds=self.delay_seconds,
        )
        for r in results:
            if r.error:
                logger.warning(f"Skipping {r.repository}: {r.error}")

        replacement = replace_names_with_latest_tags(
            results, self.config.target_names, self.config.repo_mapping
        )
        for r in replacement.replacements:
            logger.info(f"  {r.original_name} -> {r.new_version} ({r.repository})")

        publish_list = build_publish_list(published_names, replacement.replacements)
        logger.info(f"Builds to Publish: {publish_list}")
        return publish_list

    def emit_summary(self, project_names: List[str]) -> None:
        if not self.config.summary_path:
            return
        markdown = format_publish_summary(project_names, self.config.environment_name)
        print(markdown, flush=True)
        write_step_summary(self.config.summary_path, markdown)

    async def execute(self, preview: bool = False) -> int:
        """Run the flow and return the process exit code."""
        try:
            self.session = await self.platform.login(self.config.credentials)
            self._transition(RunState.LOGGED_IN)

            self.publish_list = await self.resolve_publish_list()

            if preview:
                print(json.dumps({"builds_to_publish": self.publish_list}, indent=2), flush=True)
                print("Preview: no publish requested. Omit --preview to publish the list above.", flush=True)
                return EXIT_OK

            self._transition(RunState.PUBLISH_REQUESTED)
            await self.platform.publish(self.session, self.publish_list, self.config.validate_only)
            self.emit_summary(self.publish_list)
            return EXIT_OK
        except Exception as e:
            logger.error(f"Publish run failed in state {self.state.value}: {e}")
            self._transition(RunState.FAILED)
            return EXIT_FAILED
        finally:
            await self.platform.logout(self.session)
            self._transition(RunState.LOGGED_OUT)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish Acumatica customization projects at their latest GitHub release tags.",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to projects.yaml (project catalogue).",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Resolve and print the publish list without publishing (login/logout still happen).",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait between GitHub tag lookups.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(os.environ, Path(args.config))
    except (ValueError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr, flush=True)
        return EXIT_CONFIG

    if not config.target_names:
        logger.warning("No customization projects enabled; publishing the current set unchanged")

    run = PublishRun(
        config,
        AcumaticaClient(config.base_url),
        GitHubTagClient(config.github_api_url, config.github_token),
        delay_seconds=args.delay,
    )
    return asyncio.run(run.execute(preview=args.preview))


if __name__ == "__main__":
    raise SystemExit(main())

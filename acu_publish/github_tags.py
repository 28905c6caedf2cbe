"""GitHub tag lookup.

For every configured repository the latest tag matching the run's tag
pattern is resolved. "Latest" is decided by the numeric value of the last
dot-delimited segment of the tag name, so `app-v1.2.10` beats `app-v1.2.9`.
A repository whose lookup fails is reported with an error and skipped; it
never aborts the batch.
"""

import asyncio
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx

from .models import FetchResult, Tag
from .utils import get_logger

logger = get_logger(__name__)

USER_AGENT = "acu-publish-tag-fetcher"
TAGS_PER_PAGE = 100
LEADING_DIGITS_RE = re.compile(r"^\s*(\d+)")


class GitHubTagClient:
    """Minimal GitHub REST client for listing repository tags"""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github.v3+json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def list_tags(self, repository: str) -> List[Dict[str, Any]]:
        """List up to 100 tags of `owner/repo`"""
        owner, _, repo = repository.partition("/")
        url = f"{self.api_url}/repos/{quote(owner)}/{quote(repo)}/tags"

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(url, headers=self._headers(), params={"per_page": TAGS_PER_PAGE})
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, list):
            raise ValueError(f"Unexpected tags payload for {repository}: {str(data)[:200]}")
        return data


def tag_sort_key(name: str) -> int:
    """Numeric value of the last dot-delimited segment; -1 when it has none."""
    m = LEADING_DIGITS_RE.match(name.split(".")[-1])
    return int(m.group(1)) if m else -1


def select_matching_tags(raw_tags: Iterable[Dict[str, Any]], pattern: re.Pattern) -> List[Tag]:
    """Filter tags by pattern and order them latest first.

    Ties on the trailing number keep the order GitHub returned them in.
    """
    matching = []
    for raw in raw_tags:
        if not isinstance(raw, dict):
            raise ValueError(f"Unexpected tag entry: {str(raw)[:200]}")
        name = str(raw.get("name", ""))
        if not name or not pattern.search(name):
            continue
        commit = raw.get("commit") or {}
        if not isinstance(commit, dict):
            raise ValueError(f"Unexpected commit for tag {name}: {str(commit)[:200]}")
        matching.append(Tag(name=name, sha=str(commit.get("sha", "")), url=str(commit.get("url", ""))))

    return sorted(matching, key=lambda t: tag_sort_key(t.name), reverse=True)


async def fetch_latest_tag(
    client: GitHubTagClient,
    repository: str,
    pattern: re.Pattern,
) -> Optional[FetchResult]:
    """Resolve the latest matching tag; None when nothing matches."""
    logger.info(f"Fetching tags for {repository}...")
    try:
        raw_tags = await client.list_tags(repository)
        matching = select_matching_tags(raw_tags, pattern)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error fetching tags for {repository}: {e}")
        return FetchResult(repository=repository, error=str(e) or e.__class__.__name__)

    if not matching:
        logger.info(f"  No matching tags found for {repository}")
        return None

    latest = matching[0]
    logger.info(f"  Latest matching tag for {repository}: {latest.name}")

    return FetchResult(
        repository=repository,
        latest_tag=latest.name,
        sha=latest.sha,
        total_matching_tags=len(matching),
        all_matching_tags=[t.name for t in matching],
    )


async def process_repositories(
    client: GitHubTagClient,
    repositories: Iterable[str],
    pattern: re.Pattern,
    delay_seconds: float = 1.0,
) -> List[FetchResult]:
    """Fetch repositories one at a time, pausing between calls for GitHub rate limits."""
    results: List[FetchResult] = []

    for i, repository in enumerate(repositories):
        if i > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        result = await fetch_latest_tag(client, repository, pattern)
        if result is not None:
            results.append(result)

    return results

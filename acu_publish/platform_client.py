"""Acumatica customization API client.

Covers the four calls a publish run needs: login, GetPublished,
PublishBegin/PublishEnd and logout. Login returns a `PlatformSession`
carrying the session cookies; every later call takes that session
explicitly.
"""

from typing import Any, Dict, List, Optional

import httpx

from .models import Credentials, PlatformSession, PublishedProject, PublishRequest
from .utils import get_logger

logger = get_logger(__name__)


class AcumaticaApiError(ValueError):
    """Raised when an Acumatica API call fails at transport or HTTP level."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AcumaticaClient:
    """HTTP client for the Acumatica REST and CustomizationApi endpoints"""

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        session: Optional[PlatformSession] = None,
        body: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if extra_headers:
            headers.update(extra_headers)
        if session is not None and session.cookie_header:
            headers["Cookie"] = session.cookie_header

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                if method == "GET":
                    response = await client.request(method, url, headers=headers)
                else:
                    response = await client.request(method, url, headers=headers, json=body if body is not None else {})
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            error_body = e.response.text[:500]
            logger.error(f"Error in {method} {url}: HTTP {e.response.status_code} {error_body}")
            raise AcumaticaApiError(
                f"Acumatica API HTTP {e.response.status_code} error for {method} {url}: {error_body}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Error in {method} {url}: {e!r}")
            raise AcumaticaApiError(f"Acumatica API connection error for {method} {url}: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise AcumaticaApiError(
                f"Invalid JSON response from {response.request.method} {response.request.url}: "
                f"{response.text[:500]}"
            ) from e

    async def login(self, credentials: Credentials) -> PlatformSession:
        response = await self._request(
            "POST",
            "/entity/auth/login",
            body=credentials.model_dump(),
            extra_headers={"Accept": "application/json"},
        )
        # same name may be set on several paths
        cookies = [(c.name, c.value) for c in response.cookies.jar]
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies)
        logger.info(f"Login successful, session cookies: {[name for name, _ in cookies]}")
        return PlatformSession(cookie_header=cookie_header)

    async def get_published(self, session: PlatformSession) -> List[PublishedProject]:
        response = await self._request("GET", "/CustomizationApi/GetPublished", session=session)
        data = self._json(response)
        projects = data.get("projects") if isinstance(data, dict) else None
        if not isinstance(projects, list):
            # PublishBegin replaces the whole published set
            raise AcumaticaApiError(
                f"GetPublished response has no projects list: {str(data)[:500]}"
            )
        return [PublishedProject(**p) for p in projects if isinstance(p, dict) and p.get("name")]

    async def publish(self, session: PlatformSession, project_names: List[str], validate_only: bool) -> Dict[str, Any]:
        """Start publishing `project_names` and collect the PublishEnd response."""
        request = PublishRequest(project_names=list(project_names), is_only_validation=validate_only)
        await self._request("POST", "/CustomizationApi/PublishBegin", session=session, body=request.to_wire())
        response = await self._request("GET", "/CustomizationApi/PublishEnd", session=session)
        data = self._json(response)
        logger.info(f"Publish End Response: {data}")
        return data if isinstance(data, dict) else {"response": data}

    async def logout(self, session: Optional[PlatformSession]) -> bool:
        """End the session; failures are logged, never raised."""
        try:
            response = await self._request("POST", "/entity/auth/logout", session=session)
        except AcumaticaApiError as e:
            logger.error(f"Error during logout: {e}")
            return False
        logger.info(f"Logout successful: {response.status_code}")
        return True


def format_publish_summary(project_names: List[str], environment_name: str = "") -> str:
    ordered = sorted(project_names, key=lambda n: (n.casefold(), n))
    lines = [f"## Published Customizations for : {environment_name}", ""]
    lines.extend(f"{i}. {name}" for i, name in enumerate(ordered, start=1))
    return "\n".join(lines)


def write_step_summary(summary_path: str, markdown: str) -> None:
    """Append markdown to the GitHub Actions step summary file"""
    with open(summary_path, "a", encoding="utf-8") as f:
        f.write(markdown + "\n")

"""
Gitea API client for reading and editing issues.

This module handles all interactions with the Gitea REST API,
including issue lookups, edits, label changes and authentication.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx

from .exceptions import (
    RemoteAPIError,
    RemoteAuthError,
    RemoteClientError,
    RemoteNetworkError,
    RemoteRateLimitError,
    RemoteTimeoutError,
)
from .models import IssueState, Label, Milestone, RemoteIssue, User
from .provider import ProviderType, RemoteIssueClient

logger = logging.getLogger(__name__)

TOKEN_HINT = "Check the Gitea token (--gitea-token or GITEA_TOKEN)"


class GiteaClient(RemoteIssueClient):
    """
    Client for interacting with Gitea via its REST API.

    Requests are issued one at a time through a shared httpx.AsyncClient
    that is created lazily and released by close().
    """

    DEFAULT_PAGE_SIZE = 50

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the Gitea client.

        Args:
            base_url: Base URL of the Gitea instance (e.g., https://gitea.example.com)
            token: API token for authentication
            timeout: Request timeout in seconds; None waits indefinitely
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        return ProviderType.GITEA

    @property
    def api_url(self) -> str:
        """Get the API base URL."""
        return f"{self.base_url}/api/v1"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={
                    "Authorization": f"token {self.token}",
                    "Accept": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Make an API request with error handling.

        Args:
            method: HTTP method
            path: API path (without base URL)
            params: Query parameters
            json: JSON request body

        Returns:
            Decoded JSON response, or None for empty responses

        Raises:
            Various RemoteClientError subclasses based on failure type
        """
        client = await self._get_client()
        command = f"{method} {self.api_url}{path}"
        logger.debug(f"Requesting: {command}")

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(self.timeout or 0, command=command) from e
        except httpx.TransportError as e:
            raise RemoteNetworkError(str(e), command=command) from e

        if response.status_code == 401:
            raise RemoteAuthError("Invalid or expired API token", command=command, hint=TOKEN_HINT)

        if response.status_code == 403:
            if "rate limit" in response.text.lower():
                raise RemoteRateLimitError(command=command)
            raise RemoteAuthError(
                f"Access forbidden: {response.text}", command=command, hint=TOKEN_HINT
            )

        if response.status_code == 404:
            raise RemoteAPIError(f"Not found: {path}", 404, command=command)

        if response.status_code >= 400:
            raise RemoteAPIError(response.text, response.status_code, command=command)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def check_connection(self) -> bool:
        """
        Check if the Gitea instance is accessible and token is valid.

        Raises:
            RemoteAuthError: If authentication fails
            RemoteNetworkError: If connection fails
        """
        try:
            await self._request("GET", "/user")
            return True
        except RemoteAPIError as e:
            if e.status_code != 404:
                raise
            # /user endpoint might not exist, try /version
            await self._request("GET", "/version")
            return True

    def _parse_datetime(self, value: str | None) -> datetime | None:
        """Parse ISO datetime string from Gitea API."""
        if not value:
            return None
        try:
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            logger.warning(f"Failed to parse datetime: {value}")
            return None

    def _parse_issue(self, data: dict[str, Any]) -> RemoteIssue:
        """Parse issue JSON from Gitea API into a RemoteIssue model."""
        milestone_data = data.get("milestone")
        milestone = None
        if milestone_data and milestone_data.get("title"):
            milestone = Milestone(title=milestone_data["title"])

        # Gitea uses "open" and "closed"
        state_str = (data.get("state") or "open").lower()
        state = IssueState.CLOSED if state_str == "closed" else IssueState.OPEN

        return RemoteIssue(
            number=data.get("number", 0),
            title=data.get("title", ""),
            state=state,
            body=data.get("body"),
            labels=[
                Label(name=lbl.get("name", ""), id=lbl.get("id"), color=lbl.get("color"))
                for lbl in data.get("labels") or []
            ],
            assignees=[
                User(login=a.get("login") or a.get("username", ""))
                for a in data.get("assignees") or []
            ],
            milestone=milestone,
            created_at=self._parse_datetime(data.get("created_at")) or datetime.now(UTC),
            updated_at=self._parse_datetime(data.get("updated_at")) or datetime.now(UTC),
            url=data.get("html_url"),
        )

    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        """Fetch a single issue by number."""
        issue_data = await self._request("GET", f"/repos/{repo}/issues/{number}")
        if not isinstance(issue_data, dict):
            raise RemoteAPIError(f"Unexpected response for issue #{number}")
        return self._parse_issue(issue_data)

    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str | None = None,
        body_file: Path | None = None,
    ) -> None:
        """Edit title and/or body with a single PATCH request."""
        payload: dict[str, Any] = {}
        if title:
            payload["title"] = title
        if body_file is not None:
            if body_file.exists():
                payload["body"] = body_file.read_text(encoding="utf-8")
            else:
                logger.warning(f"Body file {body_file} does not exist, body not updated")

        if not payload:
            logger.debug(f"Nothing to update for issue #{number}")
            return

        await self._request("PATCH", f"/repos/{repo}/issues/{number}", json=payload)

    async def _issue_labels(self, repo: str, number: int) -> list[Label]:
        data = await self._request("GET", f"/repos/{repo}/issues/{number}/labels")
        if not isinstance(data, list):
            return []
        return [Label(name=lbl.get("name", ""), id=lbl.get("id")) for lbl in data]

    async def _repo_label_ids(self, repo: str) -> dict[str, int]:
        """Map every label name defined in the repository to its id."""
        label_ids: dict[str, int] = {}
        page = 1

        while True:
            params = {"page": page, "limit": self.DEFAULT_PAGE_SIZE}
            data = await self._request("GET", f"/repos/{repo}/labels", params=params)

            if not isinstance(data, list) or not data:
                break

            for lbl in data:
                label_ids[lbl.get("name", "")] = lbl.get("id", 0)

            if len(data) < self.DEFAULT_PAGE_SIZE:
                break  # Last page

            page += 1

        return label_ids

    async def fetch_labels(self, repo: str, number: int) -> list[str]:
        """Return the label names currently set on an issue."""
        return [lbl.name for lbl in await self._issue_labels(repo, number)]

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> bool:
        """Add labels by resolving their ids; failures are reported as False."""
        if not labels:
            return True
        try:
            label_ids = await self._repo_label_ids(repo)
            missing = [name for name in labels if name not in label_ids]
            if missing:
                logger.warning(f"Labels not defined in {repo}: {', '.join(missing)}")
            ids = [label_ids[name] for name in labels if name in label_ids]
            if not ids:
                return False
            await self._request(
                "POST",
                f"/repos/{repo}/issues/{number}/labels",
                json={"labels": ids},
            )
        except RemoteClientError as e:
            logger.warning(f"Failed to add labels {labels} to #{number}: {e.message}")
            return False
        return not missing

    async def remove_label(self, repo: str, number: int, label: str) -> bool:
        """Remove one label; failures are reported as False."""
        try:
            current = await self._issue_labels(repo, number)
            match = next((lbl for lbl in current if lbl.name == label), None)
            if match is None or match.id is None:
                logger.warning(f"Label '{label}' is not set on #{number}")
                return False
            await self._request("DELETE", f"/repos/{repo}/issues/{number}/labels/{match.id}")
        except RemoteClientError as e:
            logger.warning(f"Failed to remove label '{label}' from #{number}: {e.message}")
            return False
        return True

    def create_command_hint(self, repo: str, title: str, body_path: Path) -> str:
        """Point at the web form, since Gitea has no bundled CLI."""
        return (
            f"Open {self.base_url}/{repo}/issues/new, "
            f"use the title '{title}' and paste the content of {body_path}"
        )

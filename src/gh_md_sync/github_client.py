"""
GitHub CLI client for reading and editing issues.

This module handles all interactions with the GitHub CLI (gh). Every
remote operation is a single gh invocation, awaited to completion
before the next one starts.
"""

import asyncio
import json
import logging
import shlex
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .exceptions import (
    RemoteAPIError,
    RemoteAuthError,
    RemoteClientError,
    RemoteCLINotFoundError,
    RemoteNetworkError,
    RemoteRateLimitError,
    RemoteTimeoutError,
)
from .models import IssueState, Label, Milestone, RemoteIssue, User
from .provider import ProviderType, RemoteIssueClient

logger = logging.getLogger(__name__)

ISSUE_FIELDS = [
    "number",
    "title",
    "state",
    "labels",
    "assignees",
    "milestone",
    "body",
    "createdAt",
    "updatedAt",
]


class GitHubClient(RemoteIssueClient):
    """
    Client for interacting with GitHub via the gh CLI.

    There is no retry logic: a failing command surfaces immediately as a
    RemoteClientError carrying the command line and gh's error text.
    """

    def __init__(self, timeout: float | None = None, executable: str = "gh") -> None:
        """
        Initialize the GitHub client.

        Args:
            timeout: Per-command timeout in seconds; None waits indefinitely
            executable: Name or path of the gh binary
        """
        self.timeout = timeout
        self.executable = executable

    @property
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        return ProviderType.GITHUB

    async def close(self) -> None:
        """Close the client (no-op for CLI-based client)."""

    async def check_connection(self) -> bool:
        """
        Check if the GitHub CLI is available and authenticated.

        Raises:
            RemoteCLINotFoundError: If gh CLI is not found
            RemoteAuthError: If not authenticated
        """
        await self.check_cli_available()
        return await self.check_auth()

    async def check_cli_available(self) -> bool:
        """
        Check if gh CLI is installed and in PATH.

        Raises:
            RemoteCLINotFoundError: If gh is not found
        """
        if shutil.which(self.executable) is None:
            raise RemoteCLINotFoundError
        return True

    async def check_auth(self) -> bool:
        """
        Check if gh is authenticated.

        Raises:
            RemoteAuthError: If not authenticated
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                "auth",
                "status",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=10)

            if proc.returncode != 0:
                error_msg = stderr.decode().strip() if stderr else "Unknown error"
                raise RemoteAuthError(error_msg, command=f"{self.executable} auth status")

            return True
        except TimeoutError:
            raise RemoteAuthError("Auth check timed out") from None
        except FileNotFoundError:
            raise RemoteCLINotFoundError from None

    async def _run_gh_command(self, args: list[str]) -> str:
        """
        Execute a gh CLI command.

        Args:
            args: Command arguments (without 'gh' prefix)

        Returns:
            Command stdout as string

        Raises:
            Various RemoteClientError subclasses based on failure type
        """
        cmd = [self.executable, *args]
        cmd_str = shlex.join(cmd)
        logger.debug(f"Running command: {cmd_str}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise RemoteCLINotFoundError(command=cmd_str) from None

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=self.timeout,
            )
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise RemoteTimeoutError(self.timeout or 0, command=cmd_str) from None

        stdout_str = stdout.decode() if stdout else ""
        stderr_str = stderr.decode() if stderr else ""

        if proc.returncode != 0:
            self._handle_error(stderr_str, cmd_str)

        return stdout_str

    def _handle_error(self, stderr: str, command: str) -> None:
        """Translate gh stderr output into the matching exception."""
        stderr_lower = stderr.lower()
        details = stderr.strip()

        if "not logged in" in stderr_lower or "authentication" in stderr_lower:
            raise RemoteAuthError(details, command=command)

        if "rate limit" in stderr_lower:
            raise RemoteRateLimitError(command=command)

        # gh reports a missing issue as "Could not resolve to an Issue"
        if (
            "could not resolve to" in stderr_lower
            or "not found" in stderr_lower
            or "404" in stderr_lower
        ):
            raise RemoteAPIError(details, 404, command=command)

        if "could not resolve" in stderr_lower or "network" in stderr_lower:
            raise RemoteNetworkError(details, command=command)

        if "403" in stderr_lower:
            raise RemoteAPIError(details, 403, command=command)

        raise RemoteAPIError(details or "Unknown error", command=command)

    def _parse_datetime(self, value: str | None) -> datetime | None:
        """Parse ISO datetime string."""
        if not value:
            return None
        try:
            # Handle both Z suffix and +00:00 format
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            logger.warning(f"Failed to parse datetime: {value}")
            return None

    def _parse_issue(self, data: dict[str, Any]) -> RemoteIssue:
        """Parse gh issue JSON into a RemoteIssue model."""
        milestone_data = data.get("milestone")
        milestone = None
        if milestone_data and milestone_data.get("title"):
            milestone = Milestone(title=milestone_data["title"])

        state_str = (data.get("state") or "open").lower()
        state = IssueState.CLOSED if state_str == "closed" else IssueState.OPEN

        return RemoteIssue(
            number=data.get("number", 0),
            title=data.get("title", ""),
            state=state,
            body=data.get("body"),
            labels=[Label(name=lbl.get("name", "")) for lbl in data.get("labels") or []],
            assignees=[User(login=a.get("login", "")) for a in data.get("assignees") or []],
            milestone=milestone,
            created_at=self._parse_datetime(data.get("createdAt")) or datetime.now(UTC),
            updated_at=self._parse_datetime(data.get("updatedAt")) or datetime.now(UTC),
            url=data.get("url"),
        )

    def _decode(self, output: str) -> dict[str, Any]:
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise RemoteAPIError(f"Invalid JSON response: {e}") from e

    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        """
        Fetch a single issue by number.

        Args:
            repo: Repository in owner/repo format
            number: Issue number

        Returns:
            RemoteIssue snapshot
        """
        args = [
            "issue",
            "view",
            str(number),
            "--repo",
            repo,
            "--json",
            ",".join(ISSUE_FIELDS),
        ]
        output = await self._run_gh_command(args)
        return self._parse_issue(self._decode(output))

    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str | None = None,
        body_file: Path | None = None,
    ) -> None:
        """Edit title and/or body with a single `gh issue edit` call."""
        args = ["issue", "edit", str(number), "--repo", repo]

        if title:
            args.extend(["--title", title])

        if body_file is not None:
            if body_file.exists():
                args.extend(["--body-file", str(body_file)])
            else:
                logger.warning(f"Body file {body_file} does not exist, body not updated")

        if len(args) == 5:
            logger.debug(f"Nothing to update for issue #{number}")
            return

        await self._run_gh_command(args)

    async def fetch_labels(self, repo: str, number: int) -> list[str]:
        """Return the label names currently set on an issue."""
        args = ["issue", "view", str(number), "--repo", repo, "--json", "labels"]
        output = await self._run_gh_command(args)
        data = self._decode(output)
        return [lbl.get("name", "") for lbl in data.get("labels") or []]

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> bool:
        """Add labels in one call; failures are logged and reported as False."""
        if not labels:
            return True
        args = ["issue", "edit", str(number), "--repo", repo, "--add-label", ",".join(labels)]
        try:
            await self._run_gh_command(args)
        except RemoteClientError as e:
            logger.warning(f"Failed to add labels {labels} to #{number}: {e.message}")
            return False
        return True

    async def remove_label(self, repo: str, number: int, label: str) -> bool:
        """Remove one label; failures are logged and reported as False."""
        args = ["issue", "edit", str(number), "--repo", repo, "--remove-label", label]
        try:
            await self._run_gh_command(args)
        except RemoteClientError as e:
            logger.warning(f"Failed to remove label '{label}' from #{number}: {e.message}")
            return False
        return True

    def create_command_hint(self, repo: str, title: str, body_path: Path) -> str:
        """Return the gh command that creates the issue remotely."""
        return shlex.join(
            [
                self.executable,
                "issue",
                "create",
                "--repo",
                repo,
                "--title",
                title,
                "--body-file",
                str(body_path),
            ]
        )

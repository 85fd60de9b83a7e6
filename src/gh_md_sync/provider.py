"""
Abstract remote client protocol for issue trackers.

This module defines the interface that both the GitHub and Gitea clients
implement, allowing them (or an in-memory fake) to be used interchangeably
by the sync orchestrator.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from .exceptions import RemoteClientError
from .models import RemoteIssue

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Supported remote tracker types."""

    GITHUB = "github"
    GITEA = "gitea"


class RemoteIssueClient(ABC):
    """
    Abstract base class for remote issue clients.

    Fatal operations raise a RemoteClientError subclass. Label add/remove
    are lenient: they report failure through their return value so that a
    partial label sync never aborts a push.
    """

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the client."""
        ...

    @abstractmethod
    async def check_connection(self) -> bool:
        """
        Check if the remote is accessible and authenticated.

        Returns:
            True if connection is successful

        Raises:
            RemoteClientError subclasses on failure
        """
        ...

    @abstractmethod
    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        """
        Fetch a single issue by number.

        Args:
            repo: Repository in owner/repo format
            number: Issue number

        Returns:
            RemoteIssue snapshot

        Raises:
            RemoteClientError: If the issue cannot be fetched
        """
        ...

    @abstractmethod
    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str | None = None,
        body_file: Path | None = None,
    ) -> None:
        """
        Replace the title and/or body of an issue in one call.

        Args:
            repo: Repository in owner/repo format
            number: Issue number
            title: New title, or None to leave it unchanged
            body_file: File whose content becomes the new body; skipped
                if None or missing
        """
        ...

    @abstractmethod
    async def fetch_labels(self, repo: str, number: int) -> list[str]:
        """Return the label names currently set on an issue."""
        ...

    @abstractmethod
    async def add_labels(self, repo: str, number: int, labels: list[str]) -> bool:
        """Add labels to an issue. Returns False instead of raising on failure."""
        ...

    @abstractmethod
    async def remove_label(self, repo: str, number: int, label: str) -> bool:
        """Remove one label from an issue. Returns False instead of raising on failure."""
        ...

    @abstractmethod
    def create_command_hint(self, repo: str, title: str, body_path: Path) -> str:
        """Describe how to create a scaffolded issue on the remote by hand."""
        ...

    async def fetch_issue_safe(self, repo: str, number: int) -> RemoteIssue | None:
        """
        Fetch an issue, reporting failure as None instead of raising.

        Used where a missing or unreachable issue is worth reporting but
        should not stop processing of other issues.
        """
        try:
            return await self.fetch_issue(repo, number)
        except RemoteClientError as e:
            logger.debug(f"Could not fetch issue #{number}: {e.message}")
            return None

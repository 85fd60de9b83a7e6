"""
Exception hierarchy for gh-md-sync.

This module defines custom exceptions with clear messages and
actionable guidance for users.
"""


class GhMdSyncError(Exception):
    """Base exception for all gh-md-sync errors."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


# Remote Client Errors


class RemoteClientError(GhMdSyncError):
    """Base class for remote tracker errors."""

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        command: str | None = None,
    ) -> None:
        self.command = command
        super().__init__(message, hint)


class RemoteCLINotFoundError(RemoteClientError):
    """The gh CLI tool is not installed or not in PATH."""

    def __init__(self, command: str | None = None) -> None:
        super().__init__(
            "GitHub CLI (gh) not found",
            "Install it from https://cli.github.com/ and ensure it's in your PATH",
            command=command,
        )


class RemoteAuthError(RemoteClientError):
    """Authentication with the remote tracker failed or is not configured."""

    def __init__(
        self,
        details: str = "",
        command: str | None = None,
        hint: str = "Run 'gh auth login' to authenticate with GitHub",
    ) -> None:
        message = "Authentication failed"
        if details:
            message = f"{message}: {details}"
        super().__init__(message, hint, command=command)


class RemoteAPIError(RemoteClientError):
    """The remote tracker returned an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        command: str | None = None,
    ) -> None:
        self.status_code = status_code
        status_info = f" (HTTP {status_code})" if status_code else ""
        super().__init__(
            f"Remote API error{status_info}: {message}",
            "Check that the repository and issue exist and you have access to them",
            command=command,
        )


class RemoteNetworkError(RemoteClientError):
    """Network error communicating with the remote tracker."""

    def __init__(self, details: str = "", command: str | None = None) -> None:
        message = "Network error connecting to the remote tracker"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check your internet connection and try again",
            command=command,
        )


class RemoteRateLimitError(RemoteClientError):
    """Remote API rate limit exceeded."""

    def __init__(self, command: str | None = None) -> None:
        super().__init__(
            "Remote API rate limit exceeded",
            "Wait a few minutes and try again",
            command=command,
        )


class RemoteTimeoutError(RemoteClientError):
    """A remote call did not finish within the configured timeout."""

    def __init__(self, timeout_seconds: float, command: str | None = None) -> None:
        super().__init__(
            f"Remote call timed out after {timeout_seconds} seconds",
            "Check your network or raise --timeout",
            command=command,
        )


# Local Store Errors


class LocalStoreError(GhMdSyncError):
    """Base class for local mirror file errors."""


class LocalIssueNotFoundError(LocalStoreError):
    """No local files exist for an issue number."""

    def __init__(self, issue_number: int) -> None:
        self.issue_number = issue_number
        super().__init__(
            f"No local files found for issue #{issue_number}",
            f"Run 'gh-md-sync pull {issue_number}' to create them",
        )


class BodyFileNotFoundError(LocalStoreError):
    """The Markdown body file of a tracked issue is missing."""

    def __init__(self, file_path: str) -> None:
        super().__init__(
            f"Body file not found: {file_path}",
            "Restore the file or run 'gh-md-sync pull' to recreate it",
        )


class MetadataParseError(LocalStoreError):
    """Failed to read or validate a metadata file."""

    def __init__(self, file_path: str, details: str = "") -> None:
        message = f"Failed to read metadata file '{file_path}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check that the file is valid JSON with the expected fields",
        )


class MetadataMismatchError(LocalStoreError):
    """The issue number inside a metadata file disagrees with its filename."""

    def __init__(self, file_path: str, expected: int, found: int) -> None:
        super().__init__(
            f"Metadata file '{file_path}' declares issue #{found} "
            f"but is named for issue #{expected}",
            "Rename the file pair or correct 'issue_number'",
        )


class LocalWriteError(LocalStoreError):
    """Failed to write a local file."""

    def __init__(self, file_path: str, details: str = "") -> None:
        message = f"Failed to write '{file_path}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check that you have write permissions and enough disk space",
        )


class IssueFileExistsError(LocalStoreError):
    """A scaffolded issue would overwrite an existing file."""

    def __init__(self, file_path: str) -> None:
        super().__init__(
            f"File already exists: {file_path}",
            "Choose a different slug",
        )


# Configuration Errors


class ConfigError(GhMdSyncError):
    """Configuration error."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message, hint)


class InvalidRepositoryError(ConfigError):
    """Invalid repository format."""

    def __init__(self, repo: str) -> None:
        super().__init__(
            f"Invalid repository format: '{repo}'",
            "Use format 'owner/repo', e.g., 'octocat/Hello-World'",
        )

"""
Pydantic models for remote issues, local records and sync reports.

This module defines the data models used throughout the application,
providing strong typing, validation, and serialization capabilities.
"""

from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LOCAL_ONLY_FIELDS: tuple[str, ...] = (
    "hub_projekt",
    "typ",
    "technologie_steckbrief",
    "related_issues",
)


class IssueState(str, Enum):
    """Remote issue state."""

    OPEN = "open"
    CLOSED = "closed"


class User(BaseModel):
    """Remote user representation."""

    model_config = ConfigDict(frozen=True)

    login: str


class Label(BaseModel):
    """Remote issue label."""

    model_config = ConfigDict(frozen=True)

    name: str
    id: int | None = None
    color: str | None = None


class Milestone(BaseModel):
    """Remote milestone."""

    model_config = ConfigDict(frozen=True)

    title: str


class RemoteIssue(BaseModel):
    """
    Snapshot of an issue as the remote tracker reports it.

    This is the common format returned by every remote client, whatever
    the underlying transport.
    """

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    state: IssueState
    body: str | None = None
    labels: list[Label] = Field(default_factory=list)
    assignees: list[User] = Field(default_factory=list)
    milestone: Milestone | None = None
    created_at: datetime
    updated_at: datetime
    url: str | None = None

    @property
    def label_names(self) -> list[str]:
        """Get list of label names."""
        return [label.name for label in self.labels]

    @property
    def assignee_logins(self) -> list[str]:
        """Get list of assignee login names."""
        return [a.login for a in self.assignees]


class IssueRecord(BaseModel):
    """
    Local metadata record stored in ``{number}-{slug}.json``.

    Keys that are not declared here (local-only fields such as
    classification tags or cross references) are kept as extra data and
    written back in their original order.
    """

    model_config = ConfigDict(extra="allow")

    issue_number: int | None = None
    repo: str
    title: str
    state: str = IssueState.OPEN.value
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    milestone: str | None = None
    body_file: str | None = None
    created: date | None = None
    updated: date | None = None

    @property
    def extra_fields(self) -> dict[str, Any]:
        """Get the undeclared (local-only) keys of this record."""
        return dict(self.model_extra or {})

    def to_metadata(self) -> dict[str, Any]:
        """Build the JSON document in on-disk key order."""
        data: dict[str, Any] = {
            "issue_number": self.issue_number,
            "repo": self.repo,
            "title": self.title,
            "state": self.state,
            "labels": list(self.labels),
            "assignees": list(self.assignees),
            "milestone": self.milestone,
        }
        data.update(self.extra_fields)
        data["body_file"] = self.body_file
        data["created"] = self.created.isoformat() if self.created else None
        data["updated"] = self.updated.isoformat() if self.updated else None
        return data


class IssueFiles(BaseModel):
    """Paths of the metadata/body file pair for one issue."""

    model_config = ConfigDict(frozen=True)

    metadata_path: Path
    body_path: Path
    slug: str


# Reconciliation reports


class FieldDiff(BaseModel):
    """A scalar field that differs between local and remote."""

    model_config = ConfigDict(frozen=True)

    field: str
    local: str | None
    remote: str | None


class LabelDelta(BaseModel):
    """Labels to add to and remove from the remote to match the local set."""

    model_config = ConfigDict(frozen=True)

    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed

    def apply_to(self, remote_labels: list[str]) -> set[str]:
        """Return the label set that results from applying this delta."""
        return (set(remote_labels) - set(self.removed)) | set(self.added)


class DiffLineKind(str, Enum):
    """Role of a line in a body diff."""

    CONTEXT = "context"
    REMOVED = "removed"
    ADDED = "added"
    SEPARATOR = "separator"


class DiffLine(BaseModel):
    """One line of a positional body diff."""

    model_config = ConfigDict(frozen=True)

    kind: DiffLineKind
    line_number: int | None = None
    text: str = ""


class IssueDiff(BaseModel):
    """Field-level and body differences between a local record and the remote."""

    model_config = ConfigDict(frozen=True)

    issue_number: int
    fields: list[FieldDiff] = Field(default_factory=list)
    labels: LabelDelta = Field(default_factory=LabelDelta)
    body_differs: bool = False
    local_body_length: int = 0
    remote_body_length: int = 0
    body_lines: list[DiffLine] = Field(default_factory=list)

    @property
    def has_metadata_changes(self) -> bool:
        return bool(self.fields) or not self.labels.is_empty

    @property
    def in_sync(self) -> bool:
        """Check if local and remote agree on every compared field."""
        return not self.has_metadata_changes and not self.body_differs


class StatusEntry(BaseModel):
    """Sync status of a single tracked issue."""

    model_config = ConfigDict(frozen=True)

    issue_number: int
    title: str
    found: bool = True
    title_match: bool = True
    labels_match: bool = True
    state_match: bool = True
    local_labels: list[str] = Field(default_factory=list)
    remote_labels: list[str] = Field(default_factory=list)
    local_state: str = ""
    remote_state: str = ""

    @property
    def in_sync(self) -> bool:
        return self.found and self.title_match and self.labels_match and self.state_match


# Command results


class PullResult(BaseModel):
    """Outcome of pulling one issue."""

    model_config = ConfigDict(frozen=True)

    issue_number: int
    metadata_file: str
    body_file: str
    created: bool = False
    labels: list[str] = Field(default_factory=list)


class PushResult(BaseModel):
    """Outcome of pushing one issue."""

    model_config = ConfigDict(frozen=True)

    issue_number: int
    title: str
    body_file: str
    labels: list[str] = Field(default_factory=list)
    labels_added: list[str] = Field(default_factory=list)
    labels_removed: list[str] = Field(default_factory=list)
    labels_failed: list[str] = Field(default_factory=list)


class CreateResult(BaseModel):
    """Outcome of scaffolding a new local issue."""

    model_config = ConfigDict(frozen=True)

    file_number: int
    title: str
    metadata_file: str
    body_file: str
    follow_up: str


class SyncConfig(BaseModel):
    """Configuration for sync operations."""

    model_config = ConfigDict(frozen=True)

    repo: str  # Format: owner/repo
    issues_dir: Path = Path("issues")
    local_only_fields: tuple[str, ...] = DEFAULT_LOCAL_ONLY_FIELDS
    title_prefix: str = "[CTT]"

    @property
    def owner(self) -> str:
        """Get repository owner."""
        return self.repo.split("/")[0]

    @property
    def repo_name(self) -> str:
        """Get repository name."""
        parts = self.repo.split("/")
        return parts[1] if len(parts) > 1 else parts[0]

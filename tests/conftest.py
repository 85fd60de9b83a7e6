"""Pytest configuration and fixtures."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from gh_md_sync.exceptions import RemoteAPIError
from gh_md_sync.file_store import IssueFileStore
from gh_md_sync.models import (
    IssueRecord,
    IssueState,
    Label,
    Milestone,
    RemoteIssue,
    SyncConfig,
    User,
)
from gh_md_sync.provider import ProviderType, RemoteIssueClient
from gh_md_sync.sync import IssueSync


class FakeRemoteClient(RemoteIssueClient):
    """In-memory tracker standing in for the gh CLI."""

    def __init__(self, issues: list[RemoteIssue] | None = None) -> None:
        self.issues: dict[int, RemoteIssue] = {i.number: i for i in issues or []}
        self.calls: list[tuple] = []
        self.fail_label_changes = False
        self.closed = False

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GITHUB

    async def close(self) -> None:
        self.closed = True

    async def check_connection(self) -> bool:
        return True

    def _get(self, number: int) -> RemoteIssue:
        if number not in self.issues:
            raise RemoteAPIError(
                "could not find issue",
                404,
                command=f"fake issue view {number}",
            )
        return self.issues[number]

    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        self.calls.append(("fetch_issue", number))
        return self._get(number)

    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str | None = None,
        body_file: Path | None = None,
    ) -> None:
        self.calls.append(("update_issue", number, title, body_file))
        issue = self._get(number)
        update: dict = {}
        if title:
            update["title"] = title
        if body_file is not None and body_file.exists():
            update["body"] = body_file.read_text(encoding="utf-8")
        self.issues[number] = issue.model_copy(update=update)

    async def fetch_labels(self, repo: str, number: int) -> list[str]:
        self.calls.append(("fetch_labels", number))
        return self._get(number).label_names

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> bool:
        self.calls.append(("add_labels", number, list(labels)))
        if self.fail_label_changes:
            return False
        issue = self._get(number)
        merged = issue.labels + [Label(name=name) for name in labels]
        self.issues[number] = issue.model_copy(update={"labels": merged})
        return True

    async def remove_label(self, repo: str, number: int, label: str) -> bool:
        self.calls.append(("remove_label", number, label))
        if self.fail_label_changes:
            return False
        issue = self._get(number)
        kept = [lbl for lbl in issue.labels if lbl.name != label]
        self.issues[number] = issue.model_copy(update={"labels": kept})
        return True

    def create_command_hint(self, repo: str, title: str, body_path: Path) -> str:
        return f"fake issue create --repo {repo} --title '{title}' --body-file {body_path}"


def make_issue(number: int, title: str = "Test Issue", **overrides) -> RemoteIssue:
    """Build a remote issue with sensible defaults."""
    data = {
        "number": number,
        "title": title,
        "state": IssueState.OPEN,
        "body": "Issue body.",
        "created_at": datetime(2024, 1, 10, 9, 0, tzinfo=UTC),
        "updated_at": datetime(2024, 1, 15, 14, 30, tzinfo=UTC),
    }
    data.update(overrides)
    return RemoteIssue(**data)


@pytest.fixture
def sample_issue() -> RemoteIssue:
    """Create a sample remote issue."""
    return RemoteIssue(
        number=3,
        title="[CTT] [Migration] Kafka",
        state=IssueState.OPEN,
        body="## Overview\n\nMove the brokers.\n",
        labels=[Label(name="bug"), Label(name="enhancement")],
        assignees=[User(login="alice")],
        milestone=Milestone(title="v1.0.0"),
        created_at=datetime(2024, 1, 10, 9, 0, tzinfo=UTC),
        updated_at=datetime(2024, 1, 15, 14, 30, tzinfo=UTC),
    )


@pytest.fixture
def sample_record() -> IssueRecord:
    """Create a local record matching sample_issue, plus local-only fields."""
    return IssueRecord(
        issue_number=3,
        repo="owner/repo",
        title="[CTT] [Migration] Kafka",
        state="open",
        labels=["bug", "enhancement"],
        assignees=["alice"],
        milestone="v1.0.0",
        body_file="3-kafka.md",
        created="2024-01-10",
        updated="2024-01-15",
        typ="migration",
        related_issues=[1, 2],
    )


@pytest.fixture
def issues_dir(tmp_path: Path) -> Path:
    return tmp_path / "issues"


@pytest.fixture
def config(issues_dir: Path) -> SyncConfig:
    return SyncConfig(repo="owner/repo", issues_dir=issues_dir)


@pytest.fixture
def store(issues_dir: Path) -> IssueFileStore:
    return IssueFileStore(issues_dir)


@pytest.fixture
def fake_client(sample_issue: RemoteIssue) -> FakeRemoteClient:
    return FakeRemoteClient([sample_issue])


@pytest.fixture
def syncer(config: SyncConfig, fake_client: FakeRemoteClient, store: IssueFileStore) -> IssueSync:
    return IssueSync(config, provider=fake_client, store=store)

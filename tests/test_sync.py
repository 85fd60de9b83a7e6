"""Tests for the sync orchestrator."""

import asyncio
import json
from datetime import date
from pathlib import Path

import pytest
from conftest import FakeRemoteClient, make_issue

from gh_md_sync.exceptions import (
    BodyFileNotFoundError,
    InvalidRepositoryError,
    IssueFileExistsError,
    LocalIssueNotFoundError,
    RemoteAPIError,
)
from gh_md_sync.file_store import IssueFileStore
from gh_md_sync.models import IssueRecord, Label, RemoteIssue, SyncConfig
from gh_md_sync.sync import BODY_TEMPLATE, IssueSync, run_sync, title_from_slug


def _seed(store: IssueFileStore, number: int, slug: str, **fields) -> None:
    files = store.paths_for(number, slug)
    data = {"issue_number": number, "repo": "owner/repo", "title": f"Issue {number}"}
    data.update(fields)
    store.write_metadata(files.metadata_path, IssueRecord(**data))
    store.write_body(files.body_path, "Issue body.")


class TestInit:
    """Tests for IssueSync construction."""

    @pytest.mark.parametrize("repo", ["noslash", "a/b/c", "/repo", "owner/"])
    def test_invalid_repo(self, repo: str, tmp_path: Path) -> None:
        with pytest.raises(InvalidRepositoryError):
            IssueSync(SyncConfig(repo=repo, issues_dir=tmp_path), provider=FakeRemoteClient())


class TestPull:
    """Tests for pull and pull_all."""

    def test_pull_creates_files_named_from_title(
        self, syncer: IssueSync, issues_dir: Path
    ) -> None:
        result = asyncio.run(syncer.pull(3))

        assert result.created is True
        assert result.metadata_file == "3-kafka.json"
        data = json.loads((issues_dir / "3-kafka.json").read_text(encoding="utf-8"))
        assert data["issue_number"] == 3
        assert data["state"] == "open"
        assert data["labels"] == ["bug", "enhancement"]
        assert data["body_file"] == "3-kafka.md"
        assert data["created"] == "2024-01-10"
        assert (issues_dir / "3-kafka.md").read_text(encoding="utf-8") == (
            "## Overview\n\nMove the brokers.\n"
        )

    def test_pull_twice_is_byte_identical(self, syncer: IssueSync, issues_dir: Path) -> None:
        asyncio.run(syncer.pull(3))
        first = (
            (issues_dir / "3-kafka.json").read_bytes(),
            (issues_dir / "3-kafka.md").read_bytes(),
        )

        result = asyncio.run(syncer.pull(3))
        second = (
            (issues_dir / "3-kafka.json").read_bytes(),
            (issues_dir / "3-kafka.md").read_bytes(),
        )

        assert result.created is False
        assert first == second

    def test_pull_keeps_filename_when_title_changes(
        self, syncer: IssueSync, fake_client: FakeRemoteClient, issues_dir: Path
    ) -> None:
        asyncio.run(syncer.pull(3))
        fake_client.issues[3] = fake_client.issues[3].model_copy(
            update={"title": "Completely different title"}
        )

        asyncio.run(syncer.pull(3))

        assert sorted(p.name for p in issues_dir.iterdir()) == ["3-kafka.json", "3-kafka.md"]
        data = json.loads((issues_dir / "3-kafka.json").read_text(encoding="utf-8"))
        assert data["title"] == "Completely different title"

    def test_pull_preserves_local_only_fields(
        self, syncer: IssueSync, store: IssueFileStore, issues_dir: Path
    ) -> None:
        _seed(store, 3, "kafka-old", typ="migration", related_issues=[1, 2], hub_projekt="core")

        asyncio.run(syncer.pull(3))

        data = json.loads((issues_dir / "3-kafka-old.json").read_text(encoding="utf-8"))
        assert data["typ"] == "migration"
        assert data["related_issues"] == [1, 2]
        assert data["hub_projekt"] == "core"
        assert data["title"] == "[CTT] [Migration] Kafka"

    def test_pull_missing_remote_is_fatal(self, syncer: IssueSync, issues_dir: Path) -> None:
        with pytest.raises(RemoteAPIError):
            asyncio.run(syncer.pull(99))
        assert not issues_dir.exists()

    def test_pull_all_ascending(
        self, config: SyncConfig, store: IssueFileStore
    ) -> None:
        client = FakeRemoteClient([make_issue(7), make_issue(2)])
        _seed(store, 7, "seven")
        _seed(store, 2, "two")
        seen: list[int] = []

        results = asyncio.run(
            IssueSync(config, provider=client, store=store).pull_all(
                on_result=lambda r: seen.append(r.issue_number)
            )
        )

        assert [r.issue_number for r in results] == [2, 7]
        assert seen == [2, 7]
        assert [c for c in client.calls if c[0] == "fetch_issue"] == [
            ("fetch_issue", 2),
            ("fetch_issue", 7),
        ]

    def test_pull_all_stops_at_first_failure(
        self, config: SyncConfig, store: IssueFileStore
    ) -> None:
        client = FakeRemoteClient([make_issue(1), make_issue(3)])
        for number in (1, 2, 3):
            _seed(store, number, f"issue-{number}")

        with pytest.raises(RemoteAPIError):
            asyncio.run(IssueSync(config, provider=client, store=store).pull_all())

        assert ("fetch_issue", 3) not in client.calls


class TestPush:
    """Tests for push and push_all."""

    def test_push_requires_local_files(self, syncer: IssueSync) -> None:
        with pytest.raises(LocalIssueNotFoundError):
            asyncio.run(syncer.push(3))

    def test_push_sends_title_body_and_label_delta(
        self, syncer: IssueSync, store: IssueFileStore, fake_client: FakeRemoteClient
    ) -> None:
        _seed(store, 3, "kafka", title="New title", labels=["bug", "docs"])

        result = asyncio.run(syncer.push(3))

        update = next(c for c in fake_client.calls if c[0] == "update_issue")
        assert update[2] == "New title"
        assert update[3] == store.paths_for(3, "kafka").body_path
        assert result.labels_added == ["docs"]
        assert result.labels_removed == ["enhancement"]
        assert result.labels_failed == []

        remote = fake_client.issues[3]
        assert remote.title == "New title"
        assert remote.body == "Issue body.\n"
        assert set(remote.label_names) == {"bug", "docs"}

    def test_push_adds_labels_in_one_call(
        self, syncer: IssueSync, store: IssueFileStore, fake_client: FakeRemoteClient
    ) -> None:
        _seed(store, 3, "kafka", labels=["bug", "enhancement", "a", "b"])

        asyncio.run(syncer.push(3))

        adds = [c for c in fake_client.calls if c[0] == "add_labels"]
        assert adds == [("add_labels", 3, ["a", "b"])]

    def test_push_label_failures_are_reported(
        self, syncer: IssueSync, store: IssueFileStore, fake_client: FakeRemoteClient
    ) -> None:
        fake_client.fail_label_changes = True
        _seed(store, 3, "kafka", labels=["docs"])

        result = asyncio.run(syncer.push(3))

        assert sorted(result.labels_failed) == ["bug", "docs", "enhancement"]

    def test_push_does_not_touch_local_metadata(
        self, syncer: IssueSync, store: IssueFileStore
    ) -> None:
        _seed(store, 3, "kafka", state="open", labels=["bug", "enhancement"])
        path = store.paths_for(3, "kafka").metadata_path
        before = path.read_bytes()

        asyncio.run(syncer.push(3))

        assert path.read_bytes() == before

    def test_push_all_ascending(self, config: SyncConfig, store: IssueFileStore) -> None:
        client = FakeRemoteClient([make_issue(4), make_issue(1)])
        _seed(store, 4, "four")
        _seed(store, 1, "one")

        results = asyncio.run(IssueSync(config, provider=client, store=store).push_all())

        assert [r.issue_number for r in results] == [1, 4]


class TestDiff:
    """Tests for diff."""

    def test_diff_requires_local_files(self, syncer: IssueSync) -> None:
        with pytest.raises(LocalIssueNotFoundError):
            asyncio.run(syncer.diff(3))

    def test_diff_requires_body_file(
        self, syncer: IssueSync, issues_dir: Path, fake_client: FakeRemoteClient
    ) -> None:
        asyncio.run(syncer.pull(3))
        (issues_dir / "3-kafka.md").unlink()
        fake_client.calls.clear()

        with pytest.raises(BodyFileNotFoundError):
            asyncio.run(syncer.diff(3))

        assert fake_client.calls == []

    def test_diff_after_pull_is_in_sync(self, syncer: IssueSync) -> None:
        asyncio.run(syncer.pull(3))
        assert asyncio.run(syncer.diff(3)).in_sync is True

    def test_diff_reports_local_edits(
        self, syncer: IssueSync, store: IssueFileStore, fake_client: FakeRemoteClient
    ) -> None:
        asyncio.run(syncer.pull(3))
        files = store.paths_for(3, "kafka")
        store.write_body(files.body_path, "## Overview\n\nMove everything.")

        result = asyncio.run(syncer.diff(3))

        assert result.body_differs is True
        assert result.fields == []
        assert ("update_issue", 3) not in [c[:2] for c in fake_client.calls]


class TestStatus:
    """Tests for status."""

    def test_status_continues_past_missing_issues(
        self, config: SyncConfig, store: IssueFileStore
    ) -> None:
        client = FakeRemoteClient(
            [
                make_issue(1, title="Issue 1"),
                make_issue(3, title="Renamed", labels=[Label(name="bug")]),
            ]
        )
        for number in (1, 2, 3):
            _seed(store, number, f"issue-{number}")

        entries = asyncio.run(IssueSync(config, provider=client, store=store).status())

        assert [e.issue_number for e in entries] == [1, 2, 3]
        assert entries[0].in_sync is True
        assert entries[1].found is False
        assert entries[2].title_match is False
        assert entries[2].labels_match is False

    def test_status_empty(self, syncer: IssueSync) -> None:
        assert asyncio.run(syncer.status()) == []


class TestCreate:
    """Tests for create."""

    def test_title_from_slug(self) -> None:
        assert title_from_slug("kafka-migration", "[CTT]") == "[CTT] Kafka Migration"
        assert title_from_slug("single") == "Single"

    def test_first_issue_is_number_one(self, syncer: IssueSync, issues_dir: Path) -> None:
        result = syncer.create("kafka-migration", today=date(2024, 3, 1))

        assert result.file_number == 1
        assert result.title == "[CTT] Kafka Migration"
        data = json.loads((issues_dir / "1-kafka-migration.json").read_text(encoding="utf-8"))
        assert data == {
            "issue_number": None,
            "repo": "owner/repo",
            "title": "[CTT] Kafka Migration",
            "state": "open",
            "labels": [],
            "assignees": [],
            "milestone": None,
            "body_file": "1-kafka-migration.md",
            "created": "2024-03-01",
            "updated": "2024-03-01",
        }
        assert (issues_dir / "1-kafka-migration.md").read_text(encoding="utf-8") == BODY_TEMPLATE

    def test_next_number_after_highest(
        self, syncer: IssueSync, store: IssueFileStore, fake_client: FakeRemoteClient
    ) -> None:
        for number in (1, 3, 7):
            _seed(store, number, f"issue-{number}")

        result = syncer.create("x")

        assert result.file_number == 8
        assert result.metadata_file == "8-x.json"
        assert fake_client.calls == []

    def test_follow_up_command(self, syncer: IssueSync) -> None:
        result = syncer.create("kafka")
        assert "fake issue create --repo owner/repo" in result.follow_up
        assert "1-kafka.md" in result.follow_up

    def test_existing_file_is_an_error(
        self, syncer: IssueSync, issues_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        issues_dir.mkdir()
        (issues_dir / "1-kafka.json").write_text("{}", encoding="utf-8")
        monkeypatch.setattr(syncer.store, "list_numbers", lambda: [])

        with pytest.raises(IssueFileExistsError):
            syncer.create("kafka")


class TestRunSync:
    """Tests for the synchronous wrapper."""

    def test_runs_and_closes_provider(self, config: SyncConfig, sample_issue: RemoteIssue) -> None:
        client = FakeRemoteClient([sample_issue])

        result = run_sync(lambda s: s.pull(3), config, provider=client)

        assert result.issue_number == 3
        assert client.closed is True

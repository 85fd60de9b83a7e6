"""
Main sync orchestrator.

This module coordinates each command:
1. Load local state from the file store
2. Fetch remote state from the remote client (except for create)
3. Reconcile the two
4. Write the result locally or send it to the remote
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import TypeVar

from .exceptions import InvalidRepositoryError, IssueFileExistsError, LocalIssueNotFoundError
from .file_store import IssueFileStore
from .github_client import GitHubClient
from .models import (
    CreateResult,
    IssueDiff,
    IssueFiles,
    IssueRecord,
    IssueState,
    PullResult,
    PushResult,
    StatusEntry,
    SyncConfig,
)
from .provider import RemoteIssueClient
from .reconciler import check_status, diff_issue, label_delta, merge_for_pull, slugify

logger = logging.getLogger(__name__)

T = TypeVar("T")

BODY_TEMPLATE = """## Übersicht

| Aspekt | Details |
|--------|---------|
| **TODO** | Beschreibung |

## TODO

- [ ] Aufgabe 1
- [ ] Aufgabe 2
"""


def title_from_slug(slug: str, prefix: str = "") -> str:
    """Turn ``kafka-migration`` into ``"<prefix> Kafka Migration"``."""
    words = " ".join(word[:1].upper() + word[1:] for word in slug.split("-"))
    return f"{prefix} {words}" if prefix else words


class IssueSync:
    """
    Orchestrates the sync between a remote tracker and the local mirror.

    Every command runs strictly sequentially: each remote call is awaited
    before the next one starts, and ``--all`` variants walk the tracked
    issues in ascending order, stopping at the first fatal error.
    """

    def __init__(
        self,
        config: SyncConfig,
        provider: RemoteIssueClient | None = None,
        store: IssueFileStore | None = None,
    ) -> None:
        """
        Initialize the sync orchestrator.

        Args:
            config: Repository, directory and field settings
            provider: Remote client. If None, defaults to GitHubClient.
            store: File store. If None, one is created for config.issues_dir.
        """
        self._validate_repo(config.repo)
        self.config = config
        self.provider = provider if provider else GitHubClient()
        self.store = store if store else IssueFileStore(config.issues_dir)

    def _validate_repo(self, repo: str) -> None:
        """Validate repository format."""
        if "/" not in repo or repo.count("/") != 1:
            raise InvalidRepositoryError(repo)

        owner, name = repo.split("/")
        if not owner or not name:
            raise InvalidRepositoryError(repo)

    def _require_local(self, number: int) -> IssueFiles:
        files = self.store.find(number)
        if files is None:
            raise LocalIssueNotFoundError(number)
        return files

    async def pull(self, number: int) -> PullResult:
        """
        Overwrite the local copy of an issue with the remote state.

        Local-only fields and the existing filename are kept. A new file
        pair is created, named from the remote title, when none exists.

        Raises:
            RemoteClientError: If the remote fetch fails
        """
        logger.debug(f"Pulling issue #{number}")
        remote = await self.provider.fetch_issue(self.config.repo, number)

        files = self.store.find(number)
        created = files is None
        existing: IssueRecord | None = None

        if files is None:
            files = self.store.paths_for(number, slugify(remote.title))
            logger.debug(f"Creating new files: {files.metadata_path.stem}.*")
        elif files.metadata_path.exists():
            existing = self.store.read_metadata(files.metadata_path)

        record = merge_for_pull(
            existing,
            remote,
            slug=files.slug,
            repo=self.config.repo,
            local_only_fields=self.config.local_only_fields,
        )

        self.store.write_metadata(files.metadata_path, record)
        self.store.write_body(files.body_path, remote.body or "")

        return PullResult(
            issue_number=number,
            metadata_file=files.metadata_path.name,
            body_file=files.body_path.name,
            created=created,
            labels=record.labels,
        )

    async def pull_all(
        self, on_result: Callable[[PullResult], None] | None = None
    ) -> list[PullResult]:
        """Pull every tracked issue in ascending order, reporting each as it completes."""
        results: list[PullResult] = []
        for number in self.store.list_numbers():
            result = await self.pull(number)
            if on_result is not None:
                on_result(result)
            results.append(result)
        return results

    async def push(self, number: int) -> PushResult:
        """
        Send the local title, body and labels to the remote.

        Labels are applied as a difference against the labels currently
        set remotely. Failed label changes are reported, not raised. The
        local record itself is left untouched.

        Raises:
            LocalIssueNotFoundError: If there are no local files
            RemoteClientError: If the edit or the label lookup fails
        """
        logger.debug(f"Pushing issue #{number}")
        files = self._require_local(number)
        record = self.store.read_metadata(files.metadata_path)
        repo = self.config.repo

        await self.provider.update_issue(
            repo,
            number,
            title=record.title,
            body_file=files.body_path,
        )

        current = await self.provider.fetch_labels(repo, number)
        delta = label_delta(record.labels, current)
        failed: list[str] = []

        if delta.added and not await self.provider.add_labels(repo, number, delta.added):
            failed.extend(delta.added)

        for label in delta.removed:
            if not await self.provider.remove_label(repo, number, label):
                failed.append(label)

        return PushResult(
            issue_number=number,
            title=record.title,
            body_file=files.body_path.name,
            labels=record.labels,
            labels_added=delta.added,
            labels_removed=delta.removed,
            labels_failed=failed,
        )

    async def push_all(
        self, on_result: Callable[[PushResult], None] | None = None
    ) -> list[PushResult]:
        """Push every tracked issue in ascending order, reporting each as it completes."""
        results: list[PushResult] = []
        for number in self.store.list_numbers():
            result = await self.push(number)
            if on_result is not None:
                on_result(result)
            results.append(result)
        return results

    async def diff(self, number: int) -> IssueDiff:
        """
        Compare the local copy of an issue with the remote, without changes.

        Raises:
            LocalIssueNotFoundError: If there are no local files
            BodyFileNotFoundError: If the body file is missing
            RemoteClientError: If the remote fetch fails
        """
        files = self._require_local(number)
        record = self.store.read_metadata(files.metadata_path)
        body = self.store.read_body(files.body_path)
        remote = await self.provider.fetch_issue(self.config.repo, number)
        return diff_issue(record, body, remote)

    async def status(self) -> list[StatusEntry]:
        """
        Check every tracked issue against the remote.

        Issues that cannot be fetched are reported as not found and the
        check continues with the next one.
        """
        entries: list[StatusEntry] = []

        for number in self.store.list_numbers():
            files = self._require_local(number)
            record = self.store.read_metadata(files.metadata_path)
            remote = await self.provider.fetch_issue_safe(self.config.repo, number)

            if remote is None:
                entries.append(
                    StatusEntry(
                        issue_number=number,
                        title=record.title,
                        found=False,
                        local_labels=sorted(record.labels),
                        local_state=record.state,
                    )
                )
                continue

            entries.append(check_status(number, record, remote))

        return entries

    def create(self, slug: str, today: date | None = None) -> CreateResult:
        """
        Scaffold a new local issue from the Markdown template.

        The file number is one past the highest tracked number. The issue
        is not created remotely; the result carries the command to do so.

        Raises:
            IssueFileExistsError: If the target metadata file already exists
        """
        existing = self.store.list_numbers()
        next_number = max(existing) + 1 if existing else 1
        files = self.store.paths_for(next_number, slug)

        if files.metadata_path.exists():
            raise IssueFileExistsError(str(files.metadata_path))

        title = title_from_slug(slug, self.config.title_prefix)
        today = today or date.today()

        record = IssueRecord(
            issue_number=None,
            repo=self.config.repo,
            title=title,
            state=IssueState.OPEN.value,
            labels=[],
            assignees=[],
            milestone=None,
            body_file=files.body_path.name,
            created=today,
            updated=today,
        )

        self.store.write_metadata(files.metadata_path, record)
        self.store.write_body(files.body_path, BODY_TEMPLATE)
        logger.debug(f"Created {files.metadata_path}")

        return CreateResult(
            file_number=next_number,
            title=title,
            metadata_file=files.metadata_path.name,
            body_file=files.body_path.name,
            follow_up=self.provider.create_command_hint(
                self.config.repo, title, files.body_path
            ),
        )


def run_sync(
    coro_factory: Callable[[IssueSync], Awaitable[T]],
    config: SyncConfig,
    provider: RemoteIssueClient | None = None,
) -> T:
    """
    Synchronous wrapper around one IssueSync coroutine method.

    This is a convenience function for running a command from non-async
    code. ``coro_factory`` receives the IssueSync instance and returns the
    coroutine to run, e.g. ``lambda s: s.pull(3)``.
    """
    syncer = IssueSync(config, provider=provider)

    async def _run() -> T:
        try:
            return await coro_factory(syncer)
        finally:
            await syncer.provider.close()

    return asyncio.run(_run())

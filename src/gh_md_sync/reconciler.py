"""
Reconciliation between local records and remote issue snapshots.

Every function here is pure: it takes the local and remote views and
returns a new record or a report, without touching files or the remote.

Field ownership:
- Remote-owned fields (title, state, labels, assignees, milestone and the
  created/updated dates) always come from the remote on pull.
- Local-only fields are copied from the existing record and never taken
  from the remote.
- ``body_file`` and the filename slug stay fixed once a record exists, so
  cosmetic title edits never move files around.
"""

import logging
import re
from collections.abc import Iterable

from .models import (
    DiffLine,
    DiffLineKind,
    FieldDiff,
    IssueDiff,
    IssueRecord,
    LabelDelta,
    RemoteIssue,
    StatusEntry,
)

logger = logging.getLogger(__name__)

_TAG_GROUP_RE = re.compile(r"\[.*?\]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """
    Derive a filename-safe slug from an issue title.

    Bracketed tag groups are dropped, so ``"[CTT] [Migration] Kafka"``
    becomes ``"kafka"``.
    """
    text = _TAG_GROUP_RE.sub("", title).strip().lower()
    return _NON_ALNUM_RE.sub("-", text).strip("-")


def merge_for_pull(
    existing: IssueRecord | None,
    remote: RemoteIssue,
    slug: str,
    repo: str,
    local_only_fields: Iterable[str],
) -> IssueRecord:
    """
    Build the local record that a pull writes.

    Args:
        existing: Current local record, or None for a new issue
        remote: Snapshot fetched from the remote
        slug: Filename slug of the record (existing or freshly derived)
        repo: Repository the record belongs to
        local_only_fields: Keys to carry over from the existing record

    Returns:
        The merged record
    """
    preserved = {}
    if existing is not None:
        extras = existing.extra_fields
        for key in local_only_fields:
            if key in extras:
                preserved[key] = extras[key]

    body_file = existing.body_file if existing is not None else None

    return IssueRecord(
        issue_number=remote.number,
        repo=repo,
        title=remote.title,
        state=remote.state.value,
        labels=remote.label_names,
        assignees=remote.assignee_logins,
        milestone=remote.milestone.title if remote.milestone else None,
        body_file=body_file or f"{remote.number}-{slug}.md",
        created=remote.created_at.date(),
        updated=remote.updated_at.date(),
        **preserved,
    )


def label_delta(local_labels: Iterable[str], remote_labels: Iterable[str]) -> LabelDelta:
    """Compute the labels to add (local - remote) and remove (remote - local)."""
    local_set = set(local_labels)
    remote_set = set(remote_labels)
    return LabelDelta(
        added=sorted(local_set - remote_set),
        removed=sorted(remote_set - local_set),
    )


def line_diff(local: str, remote: str) -> list[DiffLine]:
    """
    Compare two texts line by line at equal positions.

    This is not a minimal edit script: it only reports which positions
    disagree. Each run of disagreeing lines is preceded by the previous
    local line as context and closed by the first agreeing line plus a
    blank separator.
    """
    local_lines = local.split("\n")
    remote_lines = remote.split("\n")
    result: list[DiffLine] = []
    in_diff = False

    for i in range(max(len(local_lines), len(remote_lines))):
        local_line = local_lines[i] if i < len(local_lines) else ""
        remote_line = remote_lines[i] if i < len(remote_lines) else ""

        if local_line != remote_line:
            if not in_diff:
                in_diff = True
                if i > 0:
                    previous = local_lines[i - 1] if i - 1 < len(local_lines) else ""
                    result.append(
                        DiffLine(kind=DiffLineKind.CONTEXT, line_number=i, text=previous)
                    )
            if remote_line:
                result.append(
                    DiffLine(kind=DiffLineKind.REMOVED, line_number=i + 1, text=remote_line)
                )
            if local_line:
                result.append(
                    DiffLine(kind=DiffLineKind.ADDED, line_number=i + 1, text=local_line)
                )
        elif in_diff:
            result.append(DiffLine(kind=DiffLineKind.CONTEXT, line_number=i + 1, text=local_line))
            result.append(DiffLine(kind=DiffLineKind.SEPARATOR))
            in_diff = False

    return result


def diff_issue(record: IssueRecord, body: str, remote: RemoteIssue) -> IssueDiff:
    """
    Compare a local record and body against the remote snapshot.

    Labels are reported relative to the remote: ``added`` are labels only
    present locally, ``removed`` those only present remotely. Bodies are
    compared after trimming surrounding whitespace.
    """
    fields: list[FieldDiff] = []

    if record.title != remote.title:
        fields.append(FieldDiff(field="title", local=record.title, remote=remote.title))

    if record.state != remote.state.value:
        fields.append(FieldDiff(field="state", local=record.state, remote=remote.state.value))

    local_body = body.strip()
    remote_body = (remote.body or "").strip()
    body_differs = local_body != remote_body

    return IssueDiff(
        issue_number=remote.number,
        fields=fields,
        labels=label_delta(record.labels, remote.label_names),
        body_differs=body_differs,
        local_body_length=len(local_body),
        remote_body_length=len(remote_body),
        body_lines=line_diff(local_body, remote_body) if body_differs else [],
    )


def check_status(issue_number: int, record: IssueRecord, remote: RemoteIssue) -> StatusEntry:
    """Summarize whether title, labels and state agree, for reporting only."""
    local_labels = sorted(record.labels)
    remote_labels = sorted(remote.label_names)

    return StatusEntry(
        issue_number=issue_number,
        title=record.title,
        title_match=record.title == remote.title,
        labels_match=local_labels == remote_labels,
        state_match=record.state.lower() == remote.state.value,
        local_labels=local_labels,
        remote_labels=remote_labels,
        local_state=record.state,
        remote_state=remote.state.value,
    )

"""
Local mirror file store.

Each tracked issue is a pair of files in one directory:
``{number}-{slug}.json`` holds the metadata record and
``{number}-{slug}.md`` holds the body. Writes are plain whole-file
overwrites; there is no locking, backup or atomic rename.
"""

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from .exceptions import (
    BodyFileNotFoundError,
    LocalWriteError,
    MetadataMismatchError,
    MetadataParseError,
)
from .models import IssueFiles, IssueRecord

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".json"
BODY_SUFFIX = ".md"

# Zero-padded prefixes such as "01-" are not issue files
_FILENAME_RE = re.compile(r"^(0|[1-9]\d*)-(.*)\.json$")


class IssueFileStore:
    """Reads and writes the metadata/body file pairs of the local mirror."""

    def __init__(self, issues_dir: Path | str) -> None:
        self.issues_dir = Path(issues_dir)

    def _metadata_names(self) -> list[str]:
        if not self.issues_dir.is_dir():
            return []
        return sorted(p.name for p in self.issues_dir.iterdir() if p.is_file())

    def paths_for(self, number: int, slug: str) -> IssueFiles:
        """Build the file pair for an issue number and slug."""
        stem = f"{number}-{slug}"
        return IssueFiles(
            metadata_path=self.issues_dir / f"{stem}{METADATA_SUFFIX}",
            body_path=self.issues_dir / f"{stem}{BODY_SUFFIX}",
            slug=slug,
        )

    def find(self, number: int) -> IssueFiles | None:
        """
        Locate the files of an issue by number.

        Returns:
            The file pair, or None if no metadata file carries the number
        """
        for name in self._metadata_names():
            match = _FILENAME_RE.match(name)
            if match and match.group(1) == str(number):
                return self.paths_for(number, match.group(2))
        return None

    def list_numbers(self) -> list[int]:
        """Return the distinct issue numbers in the directory, ascending."""
        numbers: set[int] = set()
        for name in self._metadata_names():
            match = _FILENAME_RE.match(name)
            if match:
                numbers.add(int(match.group(1)))
        return sorted(numbers)

    def read_metadata(self, path: Path) -> IssueRecord:
        """
        Load a metadata record.

        Raises:
            MetadataParseError: If the file is unreadable or invalid
            MetadataMismatchError: If its issue number contradicts the filename
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise MetadataParseError(str(path), str(e)) from e

        if not isinstance(data, dict):
            raise MetadataParseError(str(path), "expected a JSON object")

        try:
            record = IssueRecord.model_validate(data)
        except ValidationError as e:
            raise MetadataParseError(str(path), str(e)) from e

        match = _FILENAME_RE.match(path.name)
        if match and record.issue_number is not None:
            expected = int(match.group(1))
            if record.issue_number != expected:
                raise MetadataMismatchError(str(path), expected, record.issue_number)

        return record

    def write_metadata(self, path: Path, record: IssueRecord) -> None:
        """Write a record as indented, newline-terminated JSON."""
        content = json.dumps(record.to_metadata(), indent=2, ensure_ascii=False) + "\n"
        self._write(path, content)

    def read_body(self, path: Path) -> str:
        """
        Load a body file.

        Raises:
            BodyFileNotFoundError: If the file does not exist
        """
        if not path.is_file():
            raise BodyFileNotFoundError(str(path))
        return path.read_text(encoding="utf-8")

    def write_body(self, path: Path, text: str) -> None:
        """Write a body, normalized to end with exactly one newline."""
        self._write(path, text.rstrip("\n") + "\n")

    def _write(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise LocalWriteError(str(path), str(e)) from e
        logger.debug(f"Wrote {path}")

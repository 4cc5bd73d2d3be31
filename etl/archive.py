# WORKFLOW: Archive iteration over uploaded ZIP and TAR files.
# Used by: Ingestion pipeline
# Classes and functions:
# 1. ArchiveIterator - Common contract: next_member() -> ArchiveMember | None
# 2. ZipArchiveIterator - Random-access directory index with an advancing cursor
# 3. TarArchiveIterator - Forward-only stream reader with an exhausted flag
# 4. open_archive() - Select the iterator for a declared archive type
#
# Iteration flow: Archive path -> open_archive(type) -> next_member() ... -> None
# Only members whose lowercased extension is .csv are ever opened or returned.
# A returned member stream is valid until the next call to next_member().

"""
Archive iteration over uploaded ZIP and TAR files.
"""

import logging
import posixpath
import tarfile
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterator, Optional, Union

from core.errors import ArchiveFormatError, ArchiveMemberError, UnsupportedArchiveError

logger = logging.getLogger(__name__)

CSV_EXTENSION = ".csv"


class ArchiveType(str, Enum):
    ZIP = "zip"
    TAR = "tar"


def parse_archive_type(value: Union[str, ArchiveType]) -> ArchiveType:
    """
    Resolve a declared archive type.

    Raises:
        UnsupportedArchiveError: If the type is not zip or tar
    """
    try:
        return ArchiveType(value)
    except ValueError:
        raise UnsupportedArchiveError(f"Unsupported archive type: {value!r}") from None


def is_csv_member(name: str) -> bool:
    """True if the member name has a .csv extension, in any case."""
    return posixpath.splitext(name)[1].lower() == CSV_EXTENSION


@dataclass
class ArchiveMember:
    name: str
    stream: IO[bytes]


class ArchiveIterator(ABC):
    """
    Yields matching CSV members of one archive, one at a time.

    Subclasses keep their own cursor state. The iterator owns the archive
    file handle and the most recently returned member stream; both are
    released by close(), which also runs when used as a context manager.
    """

    def __init__(self, path: str):
        self.path = path
        self._current: Optional[IO[bytes]] = None

    @abstractmethod
    def _advance(self) -> Optional[ArchiveMember]:
        """Return the next matching member or None once exhausted."""

    @abstractmethod
    def _close_archive(self) -> None:
        """Release the underlying archive handle."""

    def next_member(self) -> Optional[ArchiveMember]:
        """
        Fetch the next CSV member.

        Returns:
            ArchiveMember, or None when the archive is exhausted

        Raises:
            ArchiveFormatError: If archive headers cannot be read
            ArchiveMemberError: If a matching member cannot be opened
        """
        self._release_current()
        member = self._advance()
        if member is not None:
            self._current = member.stream
            logger.debug(f"Opened archive member {member.name} from {self.path}")
        return member

    def close(self) -> None:
        self._release_current()
        self._close_archive()

    def _release_current(self) -> None:
        if self._current is not None:
            try:
                self._current.close()
            finally:
                self._current = None

    def __iter__(self) -> Iterator[ArchiveMember]:
        while True:
            member = self.next_member()
            if member is None:
                return
            yield member

    def __enter__(self) -> "ArchiveIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ZipArchiveIterator(ArchiveIterator):
    """Walks the zip central directory by index."""

    def __init__(self, path: str):
        super().__init__(path)
        try:
            self._zip = zipfile.ZipFile(path, "r")
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveFormatError(f"Failed to read ZIP archive {path}: {e}") from e
        self._entries = self._zip.infolist()
        self._index = 0

    def _advance(self) -> Optional[ArchiveMember]:
        while self._index < len(self._entries):
            info = self._entries[self._index]
            self._index += 1
            if info.is_dir() or not is_csv_member(info.filename):
                continue
            try:
                stream = self._zip.open(info, "r")
            except (zipfile.BadZipFile, NotImplementedError, RuntimeError, OSError) as e:
                raise ArchiveMemberError(f"Failed to open ZIP member {info.filename}: {e}") from e
            return ArchiveMember(name=info.filename, stream=stream)
        return None

    def _close_archive(self) -> None:
        self._zip.close()


class TarArchiveIterator(ArchiveIterator):
    """Reads tar headers strictly forward; a member is lost once passed."""

    def __init__(self, path: str):
        super().__init__(path)
        self.exhausted = False
        try:
            self._file = open(path, "rb")
        except OSError as e:
            raise ArchiveFormatError(f"Failed to read TAR archive {path}: {e}") from e
        try:
            self._tar = tarfile.open(fileobj=self._file, mode="r|*")
        except tarfile.TarError as e:
            self._file.close()
            raise ArchiveFormatError(f"Failed to read TAR archive {path}: {e}") from e

    def _advance(self) -> Optional[ArchiveMember]:
        if self.exhausted:
            return None
        while True:
            try:
                info = self._tar.next()
            except (tarfile.TarError, EOFError, OSError) as e:
                raise ArchiveFormatError(f"Failed to read TAR header in {self.path}: {e}") from e
            if info is None:
                self.exhausted = True
                return None
            if not info.isfile() or not is_csv_member(info.name):
                continue
            try:
                stream = self._tar.extractfile(info)
            except (tarfile.TarError, OSError) as e:
                raise ArchiveMemberError(f"Failed to open TAR member {info.name}: {e}") from e
            if stream is None:
                raise ArchiveMemberError(f"TAR member {info.name} has no readable content")
            return ArchiveMember(name=info.name, stream=stream)

    def _close_archive(self) -> None:
        try:
            self._tar.close()
        finally:
            self._file.close()


_ITERATORS = {
    ArchiveType.ZIP: ZipArchiveIterator,
    ArchiveType.TAR: TarArchiveIterator,
}


def open_archive(path: str, archive_type: Union[str, ArchiveType]) -> ArchiveIterator:
    """
    Open an archive for member iteration.

    Args:
        path: Path to the stored archive
        archive_type: Declared container kind, "zip" or "tar"

    Returns:
        An ArchiveIterator; use it as a context manager to release handles

    Raises:
        UnsupportedArchiveError: For any other archive type, before the file is touched
        ArchiveFormatError: If the archive cannot be read
    """
    kind = parse_archive_type(archive_type)
    return _ITERATORS[kind](path)

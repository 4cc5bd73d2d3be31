# WORKFLOW: Archive ingestion for uploaded price CSV exports.
# Used by: POST /api/v0/prices, command line ingestion
# Functions:
# 1. ingest_archive() - Run one ingestion pass inside a single transaction
# 2. ingest_member() - Stream one CSV member through the validator into the sink
# 3. main() - Command line entry point against the configured database
#
# Ingestion flow: Archive type check -> BEGIN -> next CSV member -> header skip -> rows
#                 -> validate -> insert + aggregate -> ... -> COMMIT
# Row-level problems are logged, collected as RowRejection entries and skipped.
# Archive, insert and commit failures abort the pass and roll everything back.

"""
Archive ingestion for uploaded price CSV exports.
"""

import csv
import io
import logging
import tarfile
import zipfile
import zlib
from typing import Callable, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from core.errors import ArchiveMemberError
from etl.archive import ArchiveMember, ArchiveType, is_csv_member, open_archive, parse_archive_type
from etl.records import IngestionResult, RejectionReason, RowRejection
from etl.sink import TransactionalSink
from etl.validators import validate_price_row

logger = logging.getLogger(__name__)

# Errors raised while reading member bytes (corrupt compressed data, truncated archives)
_MEMBER_READ_ERRORS = (OSError, EOFError, zipfile.BadZipFile, tarfile.TarError, zlib.error)


def ingest_archive(
    archive_path: str,
    archive_type: Union[str, ArchiveType],
    session_factory: Callable[[], Session],
) -> IngestionResult:
    """
    Ingest every CSV member of an archive in one transaction.

    Args:
        archive_path: Path to the stored archive
        archive_type: "zip" or "tar"
        session_factory: Creates the session that owns this pass's transaction

    Returns:
        IngestionResult with item count, distinct categories, total price and rejections

    Raises:
        UnsupportedArchiveError: For an unknown archive type (nothing is opened)
        ArchiveFormatError: If the archive structure cannot be read
        ArchiveMemberError: If a CSV member cannot be opened or read
        PersistenceError: If an insert or the commit fails
    """
    kind = parse_archive_type(archive_type)
    logger.info(f"Starting ingestion of {archive_path} ({kind.value})")

    result = IngestionResult()
    with TransactionalSink(session_factory()) as sink:
        with open_archive(archive_path, kind) as archive:
            for member in archive:
                # The iterator already filters, but never parse a non-CSV member
                if not is_csv_member(member.name):
                    continue
                ingest_member(member, sink, result)
        sink.commit()

    logger.info(
        f"Ingested {result.item_count} items in {result.category_count} categories "
        f"(total price {result.total_price}, {result.rows_skipped} rows skipped) from {archive_path}"
    )
    return result


def ingest_member(member: ArchiveMember, sink: TransactionalSink, result: IngestionResult) -> None:
    """
    Stream one CSV member into the sink.

    The first non-blank record is the header and is discarded; its field
    count fixes the field count of every data row. A member whose header is
    missing or cannot be tokenized is recorded and skipped.

    Args:
        member: Opened archive member
        sink: Transactional sink of the current pass
        result: Running aggregate, updated in place
    """
    text = io.TextIOWrapper(member.stream, encoding="utf-8", errors="replace", newline="")
    lines = _RecordLines(text)
    reader = csv.reader(lines, strict=True)

    try:
        try:
            header = _next_record(reader, lines)
        except csv.Error as e:
            _reject(result.rejections, member.name, reader.line_num, RejectionReason.UNPARSEABLE_ROW,
                    f"cannot read header: {e}")
            return
        if header is None:
            _reject(result.rejections, member.name, None, RejectionReason.MISSING_HEADER, "member has no header row")
            return
        expected_fields = len(header[1])

        while True:
            try:
                entry = _next_record(reader, lines)
            except csv.Error as e:
                _reject(result.rejections, member.name, reader.line_num, RejectionReason.UNPARSEABLE_ROW, str(e))
                continue
            if entry is None:
                break

            line, row = entry
            if len(row) != expected_fields:
                _reject(result.rejections, member.name, line, RejectionReason.UNPARSEABLE_ROW,
                        f"wrong number of fields: expected {expected_fields}, got {len(row)}")
                continue

            record, reason, detail = validate_price_row(row)
            if record is None:
                _reject(result.rejections, member.name, line, reason, detail)
                continue
            sink.insert(record)
            result.add(record)
    except _MEMBER_READ_ERRORS as e:
        raise ArchiveMemberError(f"Failed to read archive member {member.name}: {e}") from e
    finally:
        # The archive iterator owns the underlying stream
        text.detach()


class _RecordLines:
    """Line source for csv.reader that keeps the raw text of the record being read."""

    def __init__(self, text: io.TextIOBase):
        self._text = text
        self._consumed: List[str] = []

    def __iter__(self) -> "_RecordLines":
        return self

    def __next__(self) -> str:
        line = next(self._text)
        self._consumed.append(line)
        return line

    def take(self) -> str:
        raw = "".join(self._consumed)
        self._consumed = []
        return raw


def _next_record(reader, lines: _RecordLines) -> Optional[Tuple[int, List[str]]]:
    """
    Return (line number, fields) of the next non-blank record, or None at end of member.

    Raises:
        csv.Error: For malformed quoting, including a quote inside an unquoted field
    """
    while True:
        lines.take()
        row = next(reader, None)
        if row is None:
            return None
        raw = lines.take()
        if not row:
            continue
        if _has_bare_quote(raw):
            raise csv.Error('bare " in non-quoted field')
        return reader.line_num, row


def _has_bare_quote(raw: str) -> bool:
    """True if a quote character appears inside a field that does not start with one."""
    field_start = True
    in_quotes = False
    i = 0
    while i < len(raw):
        char = raw[i]
        if in_quotes:
            if char == '"':
                if raw[i + 1:i + 2] == '"':
                    i += 1
                else:
                    in_quotes = False
        elif char == '"':
            if not field_start:
                return True
            in_quotes = True
            field_start = False
        else:
            field_start = char in ",\r\n"
        i += 1
    return False


def _reject(
    rejections: List[RowRejection],
    member_name: str,
    line: Optional[int],
    reason: RejectionReason,
    detail: str,
) -> None:
    rejection = RowRejection(member=member_name, line=line, reason=reason, detail=detail)
    rejections.append(rejection)
    location = f"{member_name}:{line}" if line is not None else member_name
    logger.warning(f"Skipping {location} ({reason.value}): {detail}")


def main(archive_path: str, archive_type: str) -> None:
    """
    Main ingestion function.

    Args:
        archive_path: Path to ZIP or TAR file containing price CSV files
        archive_type: "zip" or "tar"
    """
    from db.session import Database

    database = Database()
    try:
        database.init_db()
        result = ingest_archive(archive_path, archive_type, database.session_factory)
        print(
            f"total_items={result.item_count} "
            f"total_categories={result.category_count} "
            f"total_price={result.total_price}"
        )
    except Exception as e:
        logger.error(f"Ingestion failed for {archive_path}: {e}")
        raise
    finally:
        database.dispose()


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) not in (2, 3):
        print("Usage: python -m etl.ingest_archive <archive_path> [zip|tar]")
        sys.exit(1)

    main(sys.argv[1], sys.argv[2] if len(sys.argv) == 3 else "zip")

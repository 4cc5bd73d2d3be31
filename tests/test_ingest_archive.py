"""Tests for :func:`ingest_archive`.

Each test runs against a fresh SQLite database. Store failures are simulated
by wrapping the session returned by the session factory, so the real
transactional sink and rollback path are exercised.
"""

import csv
import tarfile
import zipfile

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

import etl.ingest_archive as ingest_module
from conftest import csv_text
from core.errors import (
    ArchiveFormatError,
    ArchiveMemberError,
    PersistenceError,
    UnsupportedArchiveError,
)
from db.models import Price
from etl.ingest_archive import ingest_archive
from etl.records import RejectionReason

KINDS = ["zip", "tar"]

WIDGET = "1,Widget,Tools,9.99,2023-01-01"
GADGET = "2,Gadget,Tools,19.50,2023-01-02"


def failing_session_factory(database, fail_on_execute=None, fail_on_commit=False):
    """Session factory whose sessions raise a store error on the n-th execute or on commit."""

    def factory():
        session = database.session()
        execute = session.execute
        calls = {"n": 0}

        def flaky_execute(statement, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] == fail_on_execute:
                raise OperationalError(str(statement), {}, Exception("disk I/O error"))
            return execute(statement, *args, **kwargs)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        session.execute = flaky_execute
        if fail_on_commit:
            session.commit = failing_commit
        return session

    return factory


@pytest.mark.parametrize("kind", KINDS)
def test_single_member_scenario(database, make_archive, count_prices, kind):
    path = make_archive(kind, {"a.csv": csv_text(WIDGET, GADGET, "3,Bad,Row")})

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 2
    assert result.categories == {"Tools"}
    assert result.category_count == 1
    assert result.total_price == pytest.approx(29.49)
    assert count_prices() == 2
    assert [r.reason for r in result.rejections] == [RejectionReason.UNPARSEABLE_ROW]
    assert result.rejections[0].member == "a.csv"
    assert result.rejections[0].line == 4


@pytest.mark.parametrize("kind", KINDS)
def test_rows_split_across_members_give_same_aggregates(database, make_archive, kind):
    path = make_archive(kind, {"a.csv": csv_text(WIDGET), "b.csv": csv_text(GADGET)})

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 2
    assert result.categories == {"Tools"}
    assert result.total_price == pytest.approx(29.49)

    with database.session() as session:
        names = session.scalars(select(Price.name).order_by(Price.id)).all()
    assert names == ["Widget", "Gadget"]


@pytest.mark.parametrize("kind", KINDS)
def test_aggregates_match_well_formed_rows(database, make_archive, kind):
    rows = [
        "10,Hammer,Tools,12.25,2024-01-01",
        "11,Apple,Food,0.40,2024-01-02",
        "12,Pear,Food,0.55,2024-01-03",
        "13,Chair,Furniture,45,2024-01-04",
    ]
    path = make_archive(kind, {"prices.csv": csv_text(*rows)})

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 4
    assert result.categories == {"Tools", "Food", "Furniture"}
    assert result.total_price == 12.25 + 0.40 + 0.55 + 45.0
    assert result.rejections == []


@pytest.mark.parametrize("kind", KINDS)
def test_invalid_price_is_skipped(database, make_archive, count_prices, kind):
    path = make_archive(kind, {"a.csv": csv_text(WIDGET, "2,Gadget,Tools,cheap,2023-01-02")})

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 1
    assert result.total_price == 9.99
    assert count_prices() == 1
    assert result.rejections[0].reason == RejectionReason.INVALID_PRICE


@pytest.mark.parametrize("kind", KINDS)
def test_non_csv_members_are_ignored(database, make_archive, kind):
    path = make_archive(kind, {
        "a.txt": csv_text("9,Ghost,Hidden,100,2023-01-01"),
        "b.CSV": csv_text(WIDGET),
    })

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 1
    assert result.categories == {"Tools"}


@pytest.mark.parametrize("kind", KINDS)
def test_empty_member_is_skipped_with_missing_header(database, make_archive, kind):
    path = make_archive(kind, {"empty.csv": b"", "a.csv": csv_text(WIDGET, GADGET)})

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 2
    assert result.rejections[0].member == "empty.csv"
    assert result.rejections[0].reason == RejectionReason.MISSING_HEADER


def test_header_only_member_inserts_nothing(database, make_archive, count_prices):
    path = make_archive("zip", {"a.csv": csv_text()})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 0
    assert result.total_price == 0.0
    assert result.rejections == []
    assert count_prices() == 0


def test_blank_lines_and_quoted_fields(database, make_archive):
    content = csv_text('1,"Widget, large",Tools,9.99,2023-01-01', "", GADGET)
    path = make_archive("zip", {"a.csv": content})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 2
    with database.session() as session:
        assert session.scalars(select(Price.name).order_by(Price.id)).first() == "Widget, large"


def test_unparseable_rows_are_skipped(database, make_archive):
    limit = csv.field_size_limit()
    oversized = "x" * (limit + 1)
    path = make_archive("zip", {"a.csv": csv_text(f"1,{oversized},Tools,1,2023-01-01", WIDGET)})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 1
    assert result.rejections[0].reason == RejectionReason.UNPARSEABLE_ROW


@pytest.mark.parametrize("kind", KINDS)
def test_reingesting_same_archive_duplicates_rows(database, make_archive, count_prices, kind):
    path = make_archive(kind, {"a.csv": csv_text(WIDGET, GADGET)})

    first = ingest_archive(path, kind, database.session_factory)
    second = ingest_archive(path, kind, database.session_factory)

    assert first.item_count == second.item_count == 2
    assert count_prices() == 4


@pytest.mark.parametrize("kind", KINDS)
def test_insert_failure_rolls_back_whole_pass(database, make_archive, count_prices, kind):
    path = make_archive(kind, {"a.csv": csv_text(WIDGET), "b.csv": csv_text(GADGET)})

    with pytest.raises(PersistenceError, match="disk I/O error"):
        ingest_archive(path, kind, failing_session_factory(database, fail_on_execute=2))

    assert count_prices() == 0


def test_commit_failure_is_reported_and_rolled_back(database, make_archive, count_prices):
    path = make_archive("zip", {"a.csv": csv_text(WIDGET, GADGET)})

    with pytest.raises(PersistenceError, match="commit"):
        ingest_archive(path, "zip", failing_session_factory(database, fail_on_commit=True))

    assert count_prices() == 0


def test_unexpected_fault_rolls_back_and_propagates(database, make_archive, count_prices, monkeypatch):
    path = make_archive("zip", {"a.csv": csv_text(WIDGET, GADGET)})
    validate = ingest_module.validate_price_row
    calls = {"n": 0}

    def exploding_validate(row):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("unexpected fault")
        return validate(row)

    monkeypatch.setattr(ingest_module, "validate_price_row", exploding_validate)

    with pytest.raises(RuntimeError, match="unexpected fault"):
        ingest_archive(path, "zip", database.session_factory)

    assert count_prices() == 0


@pytest.mark.parametrize("kind", KINDS)
def test_malformed_archive_is_fatal(database, tmp_path, count_prices, kind):
    path = tmp_path / f"broken.{kind}"
    path.write_bytes(b"definitely not an archive")

    with pytest.raises(ArchiveFormatError):
        ingest_archive(str(path), kind, database.session_factory)

    assert count_prices() == 0


def test_unsupported_type_is_rejected_before_transaction(make_archive):
    path = make_archive("zip", {"a.csv": csv_text(WIDGET)})

    def unexpected_factory():
        raise AssertionError("no transaction should be opened")

    with pytest.raises(UnsupportedArchiveError):
        ingest_archive(path, "rar", unexpected_factory)


@pytest.mark.parametrize("kind", KINDS)
def test_row_with_extra_column_is_skipped(database, make_archive, count_prices, kind):
    path = make_archive(kind, {"a.csv": csv_text(f"{WIDGET},EXTRA", GADGET)})

    result = ingest_archive(path, kind, database.session_factory)

    assert result.item_count == 1
    assert result.total_price == 19.5
    assert count_prices() == 1
    assert result.rejections[0].reason == RejectionReason.UNPARSEABLE_ROW
    assert result.rejections[0].line == 2


@pytest.mark.parametrize("row", [
    '1,Wid"get,Tools,9.99,2023-01-01',
    '1, "Widget",Tools,9.99,2023-01-01',
    '1,"Widget"x,Tools,9.99,2023-01-01',
])
def test_rows_with_malformed_quoting_are_skipped(database, make_archive, count_prices, row):
    path = make_archive("zip", {"a.csv": csv_text(row, GADGET)})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 1
    assert count_prices() == 1
    assert [r.reason for r in result.rejections] == [RejectionReason.UNPARSEABLE_ROW]


def test_escaped_quotes_inside_quoted_field_are_accepted(database, make_archive):
    path = make_archive("zip", {"a.csv": csv_text('1,"12"" Ruler",Tools,3.50,2023-01-01')})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 1
    with database.session() as session:
        assert session.scalars(select(Price.name)).one() == '12" Ruler'


def test_member_with_unreadable_header_is_skipped(database, make_archive):
    content = b'id,"name\n' + csv_text(WIDGET)
    path = make_archive("zip", {"bad.csv": content, "good.csv": csv_text(GADGET)})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 1
    assert result.rejections[0].member == "bad.csv"
    assert result.rejections[0].reason == RejectionReason.UNPARSEABLE_ROW


def test_short_rows_under_a_short_header_are_malformed(database, make_archive):
    content = b"id,name,category\n1,Widget,Tools\n"
    path = make_archive("zip", {"a.csv": content, "b.csv": csv_text(GADGET)})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 1
    assert [r.reason for r in result.rejections] == [RejectionReason.MALFORMED_ROW]


@pytest.mark.parametrize("price", ["nan", "inf", "-inf"])
def test_non_finite_prices_are_skipped_and_pass_commits(database, make_archive, count_prices, price):
    path = make_archive("zip", {"a.csv": csv_text(f"1,Widget,Tools,{price},2023-01-01", GADGET)})

    result = ingest_archive(path, "zip", database.session_factory)

    assert result.item_count == 1
    assert result.total_price == 19.5
    assert count_prices() == 1
    assert result.rejections[0].reason == RejectionReason.INVALID_PRICE


def test_corrupted_member_data_is_fatal(database, tmp_path, count_prices):
    path = tmp_path / "corrupt.zip"
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_STORED) as archive:
        archive.writestr("a.csv", csv_text(WIDGET, GADGET))
    path.write_bytes(path.read_bytes().replace(b"Widget", b"Widgex", 1))

    with pytest.raises(ArchiveMemberError, match="a.csv"):
        ingest_archive(str(path), "zip", database.session_factory)

    assert count_prices() == 0


@pytest.mark.parametrize("kind,target,error", [
    ("zip", (zipfile.ZipFile, "open"), RuntimeError("File is encrypted")),
    ("tar", (tarfile.TarFile, "extractfile"), tarfile.ReadError("unexpected end of data")),
])
def test_member_open_failure_is_fatal(database, make_archive, count_prices, monkeypatch, kind, target, error):
    path = make_archive(kind, {"a.csv": csv_text(WIDGET), "b.csv": csv_text(GADGET)})
    owner, attribute = target
    original = getattr(owner, attribute)
    opened = []

    def failing_open(self, *args, **kwargs):
        if opened:
            raise error
        opened.append(args)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(owner, attribute, failing_open)

    with pytest.raises(ArchiveMemberError, match="b.csv"):
        ingest_archive(path, kind, database.session_factory)

    assert count_prices() == 0

"""Shared fixtures: a throwaway SQLite price database and archive builders."""

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Dict

import pytest
from sqlalchemy import func, select

from db.models import Price
from db.session import Database

HEADER = "id,name,category,price,create_date\n"


def csv_text(*rows: str) -> bytes:
    """Build CSV member content with the standard header."""
    return (HEADER + "".join(f"{row}\n" for row in rows)).encode("utf-8")


def build_zip(path: Path, members: Dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in members.items():
            archive.writestr(name, content)
    return path


def build_tar(path: Path, members: Dict[str, bytes]) -> Path:
    with tarfile.open(path, "w") as archive:
        for name, content in members.items():
            if name.endswith("/"):
                info = tarfile.TarInfo(name.rstrip("/"))
                info.type = tarfile.DIRTYPE
                archive.addfile(info)
                continue
            info = tarfile.TarInfo(name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return path


def archive_bytes(kind: str, members: Dict[str, bytes], tmp_path: Path) -> bytes:
    path = tmp_path / f"upload.{kind}"
    (build_zip if kind == "zip" else build_tar)(path, members)
    return path.read_bytes()


@pytest.fixture
def database(tmp_path: Path):
    """Fresh SQLite database with the prices table created."""
    db = Database(f"sqlite:///{tmp_path / 'prices.db'}", echo=False)
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def count_prices(database: Database) -> Callable[[], int]:
    """Count committed rows through a separate session."""

    def _count() -> int:
        with database.session() as session:
            return session.scalar(select(func.count()).select_from(Price))

    return _count


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[[str, Dict[str, bytes]], str]:
    """Write a zip or tar archive with the given members and return its path."""
    counter = {"n": 0}

    def _make(kind: str, members: Dict[str, bytes]) -> str:
        counter["n"] += 1
        path = tmp_path / f"archive_{counter['n']}.{kind}"
        if kind == "zip":
            build_zip(path, members)
        else:
            build_tar(path, members)
        return str(path)

    return _make

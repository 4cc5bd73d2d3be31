# WORKFLOW: Price upload and export endpoints.
# Used by: API clients loading or downloading price lists
# Endpoints:
# 1. POST /prices?type=zip|tar - Ingest a ZIP or TAR archive of price CSV files
# 2. GET /prices - Download every stored price as data.csv inside data.zip
#
# Upload flow: Multipart file -> Archive type check -> Temporary file -> ingest_archive()
#              -> IngestionResponse | error
# Export flow: Session -> export_prices_zip() -> application/zip attachment
# Handlers are sync so ingestion and export run in the threadpool.

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os
import shutil
import tempfile

from api.dependencies import get_database, get_db
from api.schemas.response import IngestionResponse
from core.config import settings
from core.errors import ExportError, IngestionError, UnsupportedArchiveError
from db.session import Database
from etl.archive import parse_archive_type
from etl.export_csv import EXPORT_FILENAME, export_prices_zip
from etl.ingest_archive import ingest_archive

logger = logging.getLogger(__name__)

router = APIRouter(tags=["prices"])


@router.post("/prices", response_model=IngestionResponse)
def upload_prices(
    archive_type: Optional[str] = Query(None, alias="type", description="Archive type: zip or tar"),
    file: Optional[UploadFile] = File(None),
    database: Database = Depends(get_database),
):
    """
    Ingest an uploaded archive of price CSV files.

    All accepted rows are stored in one transaction; any fatal error stores nothing.
    """
    try:
        kind = parse_archive_type(archive_type or settings.default_archive_type)
    except UnsupportedArchiveError as e:
        logger.warning(f"Rejected upload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing 'file' form field")

    temp = tempfile.NamedTemporaryFile(suffix=f".{kind.value}", dir=settings.upload_tmp_dir, delete=False)
    try:
        with temp:
            shutil.copyfileobj(file.file, temp)
        logger.info(f"Stored upload {file.filename!r} ({os.path.getsize(temp.name)} bytes) as {temp.name}")

        result = ingest_archive(temp.name, kind, database.session_factory)
        return IngestionResponse.from_result(result)

    except IngestionError as e:
        logger.error(f"Archive ingestion failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process archive: {str(e)}",
        )
    finally:
        os.remove(temp.name)


@router.get("/prices")
def download_prices(db: Session = Depends(get_db)):
    """
    Download all stored prices as a ZIP archive containing data.csv.
    """
    try:
        content = export_prices_zip(db)
    except ExportError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )

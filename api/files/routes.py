"""
Routes/endpoints for the Files API

HTTP   URI                                        Action
----   ---                                        ------
GET    /api/files/get-id-by-hash/[hash]           Get the id of stored content
GET    /api/files/[id]                            Retrieve a file summary
GET    /api/files/[id]/download                   Download a file
POST   /api/files/upload-single                   Upload one file
POST   /api/files/upload-multiple                 Upload several files
POST   /api/files/increase-links-count            Add a reference to a file
POST   /api/files/decrease-links-count            Release a reference to a file
"""

import uuid
from urllib.parse import quote
from fastapi import APIRouter, Body, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from api.files.exceptions import (
    FileDoesNotExistError,
    LinksCountCannotBeNegativeError,
)
from api.files.models import FileSummary
from core.deps import FileServiceDep
from core.logger import logger

router = APIRouter(prefix="/files", tags=["File Endpoints"])

STREAM_CHUNK_SIZE = 64 * 1024


def _not_found(operation: str, err: Exception) -> HTTPException:
    logger.warning("HTTP %s; operation: %s; %s", 404, operation, err)
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(err))


def _server_error(operation: str) -> HTTPException:
    logger.exception("HTTP %s; operation: %s", 500, operation)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{operation} failed",
    )


@router.get(
    "/get-id-by-hash/{file_hash:path}",
    response_model=uuid.UUID,
    tags=["File Endpoints"],
)
def get_id_by_hash(file_hash: str, service: FileServiceDep) -> uuid.UUID:
    """
    Return the id of the file whose content has the given base64 hash.
    """
    file_id = service.find_id(file_hash)
    if file_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No file with hash '{file_hash}'",
        )
    return file_id


@router.get("/{file_id}", response_model=FileSummary, tags=["File Endpoints"])
def get_file(file_id: uuid.UUID, service: FileServiceDep) -> FileSummary:
    """
    Retrieve the summary of a file.
    """
    try:
        return service.get_summary(file_id)
    except FileDoesNotExistError as err:
        raise _not_found("Get file", err) from err


@router.get("/{file_id}/download", tags=["File Endpoints"])
def download_file(file_id: uuid.UUID, service: FileServiceDep) -> StreamingResponse:
    """
    Download the content of a file as an attachment named after the file.
    """
    try:
        details = service.get_details(file_id)
    except FileDoesNotExistError as err:
        raise _not_found("Download file", err) from err

    def iter_content():
        while chunk := details.stream.read(STREAM_CHUNK_SIZE):
            yield chunk

    return StreamingResponse(
        iter_content(),
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=utf-8''{quote(details.name)}"
        },
        background=BackgroundTask(details.close),
    )


@router.post("/upload-single", response_model=uuid.UUID, tags=["File Endpoints"])
def upload_single(
    service: FileServiceDep,
    file: UploadFile = File(..., description="File to store"),
) -> uuid.UUID:
    """
    Store a file. Content that is already stored gets one more reference
    and its existing id is returned.
    """
    try:
        return service.upload(file.file, file.filename or "")
    except Exception as err:
        raise _server_error("Upload file") from err


@router.post(
    "/upload-multiple",
    response_model=list[uuid.UUID],
    tags=["File Endpoints"],
)
def upload_multiple(
    service: FileServiceDep,
    files: list[UploadFile] = File(..., description="Files to store"),
) -> list[uuid.UUID]:
    """
    Store several files. Identical files in one request share one id, which
    is returned once.
    """
    try:
        return service.upload_many((file.file, file.filename or "") for file in files)
    except Exception as err:
        raise _server_error("Upload files") from err


@router.post("/increase-links-count", tags=["File Endpoints"])
def increase_links_count(
    service: FileServiceDep,
    file_id: uuid.UUID = Body(..., description="Id of the file"),
) -> None:
    """
    Add a reference to a stored file.
    """
    try:
        service.add_reference(file_id)
    except FileDoesNotExistError as err:
        raise _not_found("Increase links count", err) from err


@router.post("/decrease-links-count", tags=["File Endpoints"])
def decrease_links_count(
    service: FileServiceDep,
    file_id: uuid.UUID = Body(..., description="Id of the file"),
) -> None:
    """
    Release a reference to a stored file. The file is deleted when its last
    reference is released.
    """
    try:
        service.release(file_id)
    except FileDoesNotExistError as err:
        raise _not_found("Decrease links count", err) from err
    except LinksCountCannotBeNegativeError as err:
        logger.warning("HTTP %s; operation: %s; %s", 409, "Decrease links count", err)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(err),
        ) from err

"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from sqlmodel import Session
from fastapi import Depends
import boto3

from core.config import Settings, get_settings
from core.db import get_engine
from core.logger import logger
from api.files.repository import FileSqlRepository
from api.files.services import FileService
from api.files.storage import BlobStore, create_blob_store


# Define db dependency
def get_db() -> Generator[Session, None, None]:
    with Session(get_engine()) as session:
        yield session


def get_s3_client(settings: Annotated[Settings, Depends(get_settings)]):
    """S3 client, only created when the s3 backend is configured"""
    if settings.STORAGE_BACKEND != "s3":
        return None
    return boto3.client("s3", region_name=settings.AWS_REGION)


SessionDep: TypeAlias = Annotated[Session, Depends(get_db)]
SettingsDep: TypeAlias = Annotated[Settings, Depends(get_settings)]
S3ClientDep: TypeAlias = Annotated[object, Depends(get_s3_client)]


def get_blob_store(settings: SettingsDep, s3_client: S3ClientDep) -> BlobStore:
    return create_blob_store(settings, s3_client=s3_client)


BlobStoreDep: TypeAlias = Annotated[BlobStore, Depends(get_blob_store)]


def get_file_service(
    session: SessionDep,
    blob_store: BlobStoreDep,
    settings: SettingsDep,
) -> FileService:
    return FileService(
        repository=FileSqlRepository(session),
        blob_store=blob_store,
        logger=logger,
        hash_algorithm=settings.HASH_ALGORITHM,
    )


FileServiceDep: TypeAlias = Annotated[FileService, Depends(get_file_service)]

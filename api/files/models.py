"""
Models for the Files API
"""

import uuid
from dataclasses import dataclass
from typing import BinaryIO
from sqlmodel import SQLModel, Field, UniqueConstraint
from sqlalchemy import CheckConstraint
from pydantic import ConfigDict


class FileRecord(SQLModel, table=True):
    """
    Metadata record for a stored blob.

    One row exists per distinct content hash. ``links_count`` is the number
    of logical references held; the row and its blob are removed when the
    count drops to zero.
    """
    __tablename__ = "files"

    id: uuid.UUID = Field(primary_key=True)
    hash: str = Field(max_length=128, nullable=False)
    path: str = Field(max_length=1024, nullable=False)  # Derived from id, never from hash
    name: str = Field(max_length=255, nullable=False)
    links_count: int = Field(default=1, nullable=False)

    __table_args__ = (
        UniqueConstraint("hash", name="uq_files_hash"),
        CheckConstraint("links_count >= 0", name="non_negative_links_count"),
    )

    model_config = ConfigDict(from_attributes=True)


class FileSummary(SQLModel):
    """Public representation of a file record"""
    id: uuid.UUID
    hash: str
    path: str
    name: str
    links_count: int

    model_config = ConfigDict(from_attributes=True)


@dataclass
class FileDetails:
    """
    A file summary together with an open stream of the blob.

    The stream is owned by whoever receives this object and must be closed
    by them.
    """
    summary: FileSummary
    stream: BinaryIO

    @property
    def name(self) -> str:
        return self.summary.name

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "FileDetails":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True)
class Inserted:
    """The record was created under ``id``"""
    id: uuid.UUID


@dataclass(frozen=True)
class AlreadyExists:
    """A record with the same hash already exists under ``id``"""
    id: uuid.UUID


InsertResult = Inserted | AlreadyExists

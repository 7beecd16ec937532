"""
Services for the Files API

Upload, download and reference counting of deduplicated files. The metadata
record and the blob live in two stores that cannot share a transaction:
uploads register the record before writing the blob, releases delete the
record before the blob. A failure between the two steps leaves an orphan,
which is logged and not reconciled.
"""

import logging
import uuid
from typing import BinaryIO, Iterable

from api.files.exceptions import BlobNotFoundError
from api.files.hashing import compute_hash
from api.files.models import AlreadyExists, FileDetails, FileSummary
from api.files.repository import FileSqlRepository
from api.files.storage import BlobStore


def blob_path_for(file_id: uuid.UUID) -> str:
    """Blob path of a new record, sharded on the first two hex digits of its id."""
    return f"{file_id.hex[:2]}/{file_id.hex}"


class FileService:
    """
    Coordinates the metadata store and the blob store.

    Args:
        repository: Metadata store
        blob_store: Blob store holding file contents
        logger: Logger used for diagnostics
        hash_algorithm: ``hashlib`` algorithm used to identify content
    """

    def __init__(
        self,
        repository: FileSqlRepository,
        blob_store: BlobStore,
        logger: logging.Logger,
        hash_algorithm: str = "sha256",
    ):
        self.repository = repository
        self.blob_store = blob_store
        self.logger = logger
        self.hash_algorithm = hash_algorithm

    def find_id(self, file_hash: str) -> uuid.UUID | None:
        """Return the id of the file with the given content hash, if stored."""
        return self.repository.find_id_by_hash(file_hash)

    def get_summary(self, file_id: uuid.UUID) -> FileSummary:
        return self.repository.get_summary(file_id)

    def get_details(self, file_id: uuid.UUID) -> FileDetails:
        """
        Resolve an id to its summary and an open stream of its content.

        Raises:
            FileRecordNotFoundError: No record with this id
            BlobNotFoundError: The record exists but its blob is missing
        """
        summary = self.repository.get_summary(file_id)
        if not self.blob_store.exists(summary.path):
            self.logger.warning(
                "Blob %s of file %s is missing from storage", summary.path, file_id
            )
            raise BlobNotFoundError(summary.path)

        stream = self.blob_store.read(summary.path)
        return FileDetails(summary=summary, stream=stream)

    def upload(self, stream: BinaryIO, name: str) -> uuid.UUID:
        """
        Store the contents of `stream` under display name `name`.

        Content that is already stored is not written again; its links count
        is incremented and its existing id returned instead.
        """
        file_hash = compute_hash(stream, self.hash_algorithm)

        file_id = uuid.uuid4()
        path = blob_path_for(file_id)

        result = self.repository.insert(file_id, name, path, file_hash, 1)

        if isinstance(result, AlreadyExists):
            self.repository.increment_links(result.id)
            self.logger.info(
                "Content of %r already stored as file %s, reference added", name, result.id
            )
            return result.id

        try:
            self.blob_store.write(path, stream)
        except Exception:
            self.logger.error(
                "Record %s was created but writing blob %s failed", file_id, path
            )
            raise

        self.logger.info("Stored new file %s (%r) at %s", file_id, name, path)
        return file_id

    def upload_many(self, items: Iterable[tuple[BinaryIO, str]]) -> list[uuid.UUID]:
        """
        Upload several `(stream, name)` pairs.

        Returns the distinct ids in the order they were first seen, so
        identical contents in one batch produce a single id.
        """
        ids: list[uuid.UUID] = []
        for stream, name in items:
            file_id = self.upload(stream, name)
            if file_id not in ids:
                ids.append(file_id)
        return ids

    def add_reference(self, file_id: uuid.UUID) -> None:
        self.repository.increment_links(file_id)

    def release(self, file_id: uuid.UUID) -> None:
        """
        Drop one reference to a file.

        When the last reference goes, the record and the blob are removed.
        That cleanup is best effort: the release has already succeeded once
        the count reached zero, so cleanup failures are logged, not raised.

        Raises:
            FileRecordNotFoundError: No record with this id
            LinksCountCannotBeNegativeError: The count is already zero
        """
        links_count = self.repository.decrement_links(file_id)
        if links_count > 0:
            self.logger.debug("File %s now has %d links", file_id, links_count)
            return

        path = None
        try:
            path = self.repository.delete(file_id)
            self.blob_store.delete(path)
        except Exception:  # pylint: disable=broad-exception-caught
            self.logger.exception(
                "Cleanup of released file %s (blob %s) failed", file_id, path
            )
            return

        self.logger.info("Released last reference of file %s, removed %s", file_id, path)

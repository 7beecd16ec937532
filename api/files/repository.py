"""
Data access for file records.

Every method runs as its own transaction: it commits on success and rolls
back on failure. Concurrent callers are arbitrated by the database, through
the unique constraint on ``hash`` and single-statement counter updates,
never by a read followed by a separate write.
"""

import uuid
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from api.files.exceptions import (
    FileRecordNotFoundError,
    LinksCountCannotBeNegativeError,
)
from api.files.models import (
    AlreadyExists,
    FileRecord,
    FileSummary,
    Inserted,
    InsertResult,
)

NON_NEGATIVE_LINKS_COUNT = "non_negative_links_count"


class FileSqlRepository:
    """Metadata store for file records"""

    def __init__(self, session: Session):
        self.session = session

    def find_id_by_hash(self, file_hash: str) -> uuid.UUID | None:
        """Return the id of the record holding `file_hash`, if any."""
        return self.session.exec(
            select(FileRecord.id).where(FileRecord.hash == file_hash)
        ).first()

    def insert(
        self,
        file_id: uuid.UUID,
        name: str,
        path: str,
        file_hash: str,
        links_count: int = 1,
    ) -> InsertResult:
        """
        Insert a new record unless one with the same hash exists.

        There is deliberately no existence check before the insert: the
        unique constraint on ``hash`` decides which of several concurrent
        inserts wins, and the losers get the winner's id back.

        Returns:
            ``Inserted(file_id)`` or ``AlreadyExists(existing_id)``

        Raises:
            IntegrityError: If the insert conflicted but no record holds the
                hash anymore
        """
        record = FileRecord(
            id=file_id,
            hash=file_hash,
            path=path,
            name=name,
            links_count=links_count,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            existing_id = self.find_id_by_hash(file_hash)
            if existing_id is None:
                raise
            return AlreadyExists(existing_id)

        return Inserted(file_id)

    def get_summary(self, file_id: uuid.UUID) -> FileSummary:
        """Load a record, raising FileRecordNotFoundError if absent."""
        record = self.session.get(FileRecord, file_id, populate_existing=True)
        if record is None:
            raise FileRecordNotFoundError(file_id)
        return FileSummary.model_validate(record)

    def increment_links(self, file_id: uuid.UUID) -> None:
        """Atomically add one reference to a record."""
        try:
            result = self.session.execute(
                update(FileRecord)
                .where(FileRecord.id == file_id)
                .values(links_count=FileRecord.links_count + 1)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        if updated < 1:
            raise FileRecordNotFoundError(file_id)

    def decrement_links(self, file_id: uuid.UUID) -> int:
        """
        Atomically remove one reference from a record.

        Returns:
            The links count after the decrement

        Raises:
            FileRecordNotFoundError: No record with this id
            LinksCountCannotBeNegativeError: The check constraint rejected
                the decrement
        """
        try:
            links_count = self.session.execute(
                update(FileRecord)
                .where(FileRecord.id == file_id)
                .values(links_count=FileRecord.links_count - 1)
                .returning(FileRecord.links_count)
                .execution_options(synchronize_session=False)
            ).scalar_one_or_none()
            self.session.commit()
        except IntegrityError as err:
            self.session.rollback()
            if NON_NEGATIVE_LINKS_COUNT in str(err.orig):
                raise LinksCountCannotBeNegativeError(file_id) from err
            raise
        except Exception:
            self.session.rollback()
            raise

        if links_count is None:
            raise FileRecordNotFoundError(file_id)
        return links_count

    def delete(self, file_id: uuid.UUID) -> str:
        """
        Delete a record.

        Returns:
            The path of the deleted record's blob
        """
        try:
            path = self.session.execute(
                delete(FileRecord)
                .where(FileRecord.id == file_id)
                .returning(FileRecord.path)
                .execution_options(synchronize_session=False)
            ).scalar_one_or_none()
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        if not path:
            raise FileRecordNotFoundError(file_id)
        return path

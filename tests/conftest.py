import logging

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from api.files.repository import FileSqlRepository
from api.files.services import FileService
from api.files.storage import LocalBlobStore
from core.config import InMemoryDbSettings
from core.deps import get_blob_store, get_db
from main import app


class MockS3Body:
    """Mock botocore StreamingBody"""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0
        self.closed = False

    def read(self, amt=None):
        if amt is None:
            amt = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + amt]
        self._pos += len(chunk)
        return chunk

    def close(self):
        self.closed = True


class MockS3Client:
    """Mock S3 client for testing"""

    def __init__(self):
        self.objects = {}  # {(bucket, key): bytes}
        self.error_mode = None  # For simulating errors
        self.uploads = []  # (bucket, key, extra_args) per upload_fileobj call

    def _raise_if_error(self, operation: str):
        if self.error_mode:
            raise ClientError(
                {"Error": {"Code": self.error_mode, "Message": self.error_mode}},
                operation,
            )

    def upload_fileobj(self, Fileobj, Bucket: str, Key: str, ExtraArgs: dict = None):
        self._raise_if_error("PutObject")
        chunks = []
        while chunk := Fileobj.read(3):
            chunks.append(chunk)
        self.objects[(Bucket, Key)] = b"".join(chunks)
        self.uploads.append((Bucket, Key, ExtraArgs))

    def get_object(self, Bucket: str, Key: str):
        self._raise_if_error("GetObject")
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        return {"Body": MockS3Body(self.objects[(Bucket, Key)])}

    def head_object(self, Bucket: str, Key: str):
        self._raise_if_error("HeadObject")
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket: str, Key: str):
        self._raise_if_error("DeleteObject")
        self.objects.pop((Bucket, Key), None)
        return {}

    def simulate_error(self, error_type: str):
        """
        Configure client to raise ClientError with the given code

        Args:
            error_type: e.g. "AccessDenied"
        """
        self.error_mode = error_type


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="test_settings")
def test_settings_fixture():
    return InMemoryDbSettings()


@pytest.fixture(name="blob_store")
def blob_store_fixture(tmp_path):
    return LocalBlobStore(tmp_path / "storage")


@pytest.fixture(name="repository")
def repository_fixture(session: Session):
    return FileSqlRepository(session)


@pytest.fixture(name="file_service")
def file_service_fixture(repository: FileSqlRepository, blob_store: LocalBlobStore):
    return FileService(
        repository=repository,
        blob_store=blob_store,
        logger=logging.getLogger("tests.files"),
    )


@pytest.fixture(name="mock_s3_client")
def mock_s3_client_fixture():
    """Provide a mock S3 client for testing"""
    return MockS3Client()


@pytest.fixture(name="client")
def client_fixture(session: Session, blob_store: LocalBlobStore):
    def get_db_override():
        return session

    def get_blob_store_override():
        return blob_store

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_blob_store] = get_blob_store_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

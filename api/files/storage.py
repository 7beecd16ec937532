"""
Blob storage backends.

Paths handed to a blob store are opaque keys: the store maps them onto its
root directory or bucket prefix but never derives or interprets them.
"""

import io
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import BinaryIO, Protocol, runtime_checkable

import boto3
from botocore.exceptions import ClientError

from api.files.exceptions import BlobNotFoundError
from core.config import Settings

COPY_BUFFER_SIZE = 1024 * 1024


@runtime_checkable
class BlobStore(Protocol):
    """Byte storage addressed by path"""

    def write(self, path: str, stream: BinaryIO) -> None:
        """Create or overwrite the blob at `path` from the full stream."""
        ...

    def read(self, path: str) -> BinaryIO:
        """Open the blob at `path` for reading."""
        ...

    def delete(self, path: str) -> None:
        """Remove the blob at `path`."""
        ...

    def exists(self, path: str) -> bool:
        """Check whether a blob exists at `path`."""
        ...


class LocalBlobStore:
    """
    Blob store on the local filesystem.

    Args:
        root: Directory that holds all blobs. Created if missing.
        fmode: File mode permission set on written blobs.
        dmode: Directory mode permission for created subdirectories.
    """

    def __init__(self, root: str | Path, fmode: int = 0o664, dmode: int = 0o755):
        self.root = Path(root).resolve()
        self.fmode = fmode
        self.dmode = dmode
        self.root.mkdir(parents=True, exist_ok=True, mode=self.dmode)

    def _abspath(self, path: str) -> Path:
        """Map a blob path onto the root, refusing paths that escape it."""
        abspath = (self.root / path).resolve()
        try:
            abspath.relative_to(self.root)
        except ValueError as exc:
            raise ValueError(f"Blob path escapes storage root: {path}") from exc
        if abspath == self.root:
            raise ValueError(f"Invalid blob path: {path!r}")
        return abspath

    def write(self, path: str, stream: BinaryIO) -> None:
        """
        Copy the stream into a temporary file next to the target, then move
        it into place so readers never see a partially written blob.
        """
        target = self._abspath(path)
        target.parent.mkdir(parents=True, exist_ok=True, mode=self.dmode)

        stream.seek(0)
        tmp = NamedTemporaryFile(dir=target.parent, prefix=".tmp-", delete=False)
        try:
            with tmp:
                while True:
                    data = stream.read(COPY_BUFFER_SIZE)
                    if not data:
                        break
                    tmp.write(data)
            os.chmod(tmp.name, self.fmode)
            os.replace(tmp.name, target)
        except BaseException:
            Path(tmp.name).unlink(missing_ok=True)
            raise
        finally:
            stream.seek(0)

    def read(self, path: str) -> BinaryIO:
        target = self._abspath(path)
        try:
            return open(target, "rb")
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise BlobNotFoundError(path) from exc

    def delete(self, path: str) -> None:
        """Remove the blob and any directories left empty up to the root."""
        target = self._abspath(path)
        try:
            target.unlink()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise BlobNotFoundError(path) from exc
        self._remove_empty(target.parent)

    def exists(self, path: str) -> bool:
        return self._abspath(path).is_file()

    def _remove_empty(self, directory: Path) -> None:
        """Successively remove empty folders, walking up towards the root."""
        while directory != self.root and self.root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                # Not empty, or removed concurrently
                return
            directory = directory.parent


def _parse_s3_uri(s3_uri: str) -> tuple[str, str]:
    """Parse an s3:// URI into bucket and key prefix"""
    if not s3_uri.startswith("s3://"):
        raise ValueError("Invalid S3 path format. Must start with s3://")

    path_without_scheme = s3_uri[5:]
    if not path_without_scheme or path_without_scheme.startswith("/"):
        raise ValueError("Invalid S3 path format. Bucket name is required")

    if "/" in path_without_scheme:
        bucket, prefix = path_without_scheme.split("/", 1)
    else:
        bucket, prefix = path_without_scheme, ""

    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return bucket, prefix


def _is_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound")


class S3BlobStore:
    """
    Blob store in an S3 bucket.

    Args:
        bucket_uri: ``s3://bucket/prefix`` under which blobs are kept
        s3_client: boto3 S3 client, created when not given
    """

    def __init__(self, bucket_uri: str, s3_client=None):
        self.bucket, self.prefix = _parse_s3_uri(bucket_uri)
        self.s3_client = s3_client if s3_client is not None else boto3.client("s3")

    def _key(self, path: str) -> str:
        return f"{self.prefix}{path}"

    def write(self, path: str, stream: BinaryIO) -> None:
        stream.seek(0)
        try:
            self.s3_client.upload_fileobj(
                stream,
                self.bucket,
                self._key(path),
                ExtraArgs={"ContentType": "application/octet-stream"},
            )
        finally:
            stream.seek(0)

    def read(self, path: str) -> BinaryIO:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as exc:
            if _is_not_found(exc):
                raise BlobNotFoundError(path) from exc
            raise
        return io.BufferedReader(_StreamingBodyReader(response["Body"]))

    def delete(self, path: str) -> None:
        # delete_object succeeds for missing keys, so check first
        if not self.exists(path):
            raise BlobNotFoundError(path)
        self.s3_client.delete_object(Bucket=self.bucket, Key=self._key(path))

    def exists(self, path: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as exc:
            if _is_not_found(exc):
                return False
            raise
        return True


class _StreamingBodyReader(io.RawIOBase):
    """Adapt a botocore StreamingBody to the io raw stream interface"""

    def __init__(self, body):
        self._body = body

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._body.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if not self.closed:
            self._body.close()
        super().close()


def create_blob_store(settings: Settings, s3_client=None) -> BlobStore:
    """Build the blob store selected by STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "s3":
        return S3BlobStore(settings.STORAGE_BUCKET_URI, s3_client=s3_client)
    return LocalBlobStore(settings.STORAGE_DIRECTORY_PATH)

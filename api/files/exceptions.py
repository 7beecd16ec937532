"""
Exceptions raised by the file storage services
"""


class FileDoesNotExistError(Exception):
    """The requested file is unknown or its content is gone"""


class FileRecordNotFoundError(FileDoesNotExistError):
    """No metadata record exists for the id"""

    def __init__(self, file_id):
        self.file_id = file_id
        super().__init__(f"File record not found: {file_id}")


class BlobNotFoundError(FileDoesNotExistError):
    """The blob is missing from storage"""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Blob not found: {path}")


class LinksCountCannotBeNegativeError(Exception):
    """The store refused to decrement a links count below zero"""

    def __init__(self, file_id):
        self.file_id = file_id
        super().__init__(f"Links count of file {file_id} cannot be negative")

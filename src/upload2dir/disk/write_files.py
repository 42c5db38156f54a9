"""Functions for writing uploaded files into the file server tree--the "C" and "U" in CRUD."""

import logging
import os
import stat
import time
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers, UploadFile

from upload2dir.disk.directories import ensure_directory
from upload2dir.errors import (
    BackupRenameFailed,
    FileOpenFailed,
    MissingFilePart,
    PayloadTooLarge,
    StreamCopyFailed,
)
from upload2dir.schemas import CommitResult, Destination, UploadRequest
from upload2dir.streams import declared_length, limit_stream, parse_multipart
from upload2dir.utils.decorators import log_duration

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024
FILE_MODE = 0o644


def _now() -> int:
    return int(time.time())


def backup_name(filename: str, timestamp: int) -> str:
    return f"backup-{timestamp}.{filename}"


def backup_existing(destination: Destination) -> Optional[Path]:
    """
    Move a non-empty regular file at the destination aside.

    The backup stays in the same directory as `backup-<unix seconds>.<filename>`.
    Two uploads to the same path within one second share a backup name; the
    later rename wins.

    :returns: The backup path, or None if nothing needed to be moved.
    :raises BackupRenameFailed: if the existing file could not be inspected or
        renamed. The original file is left untouched.
    """
    path = destination.path
    try:
        target = os.stat(path)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise BackupRenameFailed(f"stat {path} error: {e}") from e

    if not stat.S_ISREG(target.st_mode) or target.st_size == 0:
        return None

    backup = destination.directory / backup_name(destination.filename, _now())
    try:
        os.rename(path, backup)
    except OSError as e:
        raise BackupRenameFailed(f"rename {path} error: {e}") from e
    logger.info(f"Backed up {path} ({target.st_size} bytes) to {backup}")
    return backup


@log_duration("write_file")
def write_file(source: BinaryIO, path: Path) -> int:
    """
    Copy `source` into the file at `path`, creating it if needed.

    A copy that fails halfway leaves the partially written file on disk.

    :returns: The number of bytes written.
    :raises FileOpenFailed: if the destination cannot be opened.
    :raises StreamCopyFailed: if reading the source or writing the target fails.
    """
    try:
        # no O_TRUNC: a non-empty previous version has already been moved aside
        fd = os.open(path, os.O_RDWR | os.O_CREAT, FILE_MODE)
    except OSError as e:
        raise FileOpenFailed(f"open {path} error: {e}") from e

    written = 0
    with os.fdopen(fd, "r+b") as target:
        try:
            source.seek(0)
            while True:
                chunk = source.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                target.write(chunk)
                written += len(chunk)
            target.flush()
        except OSError as e:
            raise StreamCopyFailed(f"copy to {path} failed after {written} bytes: {e}") from e
    return written


class UploadCommitter:
    """
    Commits one multipart upload to its destination.

    The steps run strictly in order, each one a precondition of the next:

    1. ensure the destination directory exists
    2. bound the request body by `max_filesize`
    3. parse the multipart body, buffering up to `max_form_buffer` bytes per part
    4. pick the file part named `file_field_name`
    5. move a non-empty previous version aside
    6. stream the part into the destination
    7. report what was written

    The body is fully received before step 5, so neither an oversized body nor
    a client that disconnects can touch the existing file or leave a truncated
    one behind.
    """

    def __init__(self, file_field_name: str, max_filesize: int, max_form_buffer: int):
        self.file_field_name = file_field_name
        self.max_filesize = int(max_filesize)
        self.max_form_buffer = int(max_form_buffer)

    @classmethod
    def from_settings(cls, settings) -> "UploadCommitter":
        return cls(
            file_field_name=settings.file_field_name,
            max_filesize=settings.max_filesize,
            max_form_buffer=settings.max_form_buffer,
        )

    @log_duration("upload commit", level=logging.INFO)
    async def commit(
        self,
        stream: AsyncIterator[bytes],
        headers: Headers,
        destination: Destination,
        target_path_hint: Optional[str] = None,
    ) -> CommitResult:
        """
        Write the uploaded file carried by `stream` to `destination`.

        :param stream: The raw request body.
        :param headers: The request headers (content type with the multipart boundary).
        :param destination: Where the file goes.
        :param target_path_hint: The explicit destination the client asked for, if any (audit only).
        :raises Upload2DirError: one of the client or server errors of the upload protocol.
        """
        await run_in_threadpool(ensure_directory, destination.directory)

        content_length = declared_length(headers)
        if content_length is not None and content_length > self.max_filesize:
            raise PayloadTooLarge(
                f"request body of {content_length} bytes exceeds the limit of {self.max_filesize} bytes"
            )

        form = await parse_multipart(
            headers, limit_stream(stream, self.max_filesize), self.max_form_buffer
        )
        try:
            part = form.get(self.file_field_name)
            if not isinstance(part, UploadFile):
                raise MissingFilePart(f"no file part named '{self.file_field_name}' in the request")

            backup = await run_in_threadpool(backup_existing, destination)
            written = await run_in_threadpool(write_file, part.file, destination.path)
        finally:
            await form.close()

        return CommitResult(
            destination=destination,
            bytes_written=written,
            backup_path=backup,
            upload=UploadRequest(
                declared_filename=part.filename,
                target_path_hint=target_path_hint,
                declared_size=part.size,
                content_type=part.content_type,
            ),
        )

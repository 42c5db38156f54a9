"""Helpers for building multipart bodies outside of an HTTP client."""
import pytest
from starlette.datastructures import Headers
from starlette.requests import ClientDisconnect

from upload2dir.disk import write_files
from tests.consts import TEST_BACKUP_TIMESTAMP

TEST_BOUNDARY = "upload2dir-test-boundary"


def multipart_body(field: str, filename: str, content: bytes, boundary: str = TEST_BOUNDARY) -> bytes:
    head = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
        f"Content-Type: application/octet-stream\r\n\r\n"
    ).encode()
    return head + content + f"\r\n--{boundary}--\r\n".encode()


def multipart_headers(boundary: str = TEST_BOUNDARY, content_length=None) -> Headers:
    raw = {"content-type": f"multipart/form-data; boundary={boundary}"}
    if content_length is not None:
        raw["content-length"] = str(content_length)
    return Headers(raw)


async def chunked(body: bytes, size: int = 64):
    for start in range(0, len(body), size):
        yield body[start:start + size]



async def disconnecting(body: bytes, cut_at: int, size: int = 64):
    """Yield `body` up to `cut_at` bytes, then drop the connection."""
    async for chunk in chunked(body[:cut_at], size):
        yield chunk
    raise ClientDisconnect()


@pytest.fixture
def frozen_backup_clock(monkeypatch):
    """Pin the backup timestamp so backup names are predictable."""
    monkeypatch.setattr(write_files, "_now", lambda: TEST_BACKUP_TIMESTAMP)
    return TEST_BACKUP_TIMESTAMP

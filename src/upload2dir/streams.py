"""Request body helpers: byte ceiling enforcement and bounded multipart parsing."""

import logging
from typing import AsyncGenerator, AsyncIterator, Mapping, Optional

from starlette.datastructures import FormData, Headers
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import ClientDisconnect

from upload2dir.errors import ClientDisconnected, MalformedForm, PayloadTooLarge

logger = logging.getLogger(__name__)

MULTIPART_CONTENT_TYPE = "multipart/form-data"


def declared_length(headers: Mapping[str, str]) -> Optional[int]:
    """Content-Length sent by the client, or None when absent or unparsable."""
    value = headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


async def limit_stream(
    stream: AsyncIterator[bytes], max_bytes: int
) -> AsyncGenerator[bytes, None]:
    """
    Pass chunks through until more than `max_bytes` have been received.

    :raises PayloadTooLarge: as soon as the running total exceeds the ceiling;
        the offending chunk is not yielded.
    """
    received = 0
    async for chunk in stream:
        received += len(chunk)
        if received > max_bytes:
            raise PayloadTooLarge(f"request body exceeds the limit of {max_bytes} bytes")
        yield chunk


async def parse_multipart(
    headers: Headers,
    stream: AsyncGenerator[bytes, None],
    max_form_buffer: int,
) -> FormData:
    """
    Parse a multipart/form-data body.

    Each file part is held in memory up to `max_form_buffer` bytes and spills to
    a temporary file beyond that.

    :raises MalformedForm: if the body is not multipart or cannot be parsed.
    :raises ClientDisconnected: if the client went away mid-body.
    """
    content_type = headers.get("content-type", "")
    if not content_type.startswith(MULTIPART_CONTENT_TYPE):
        raise MalformedForm(f"expected a {MULTIPART_CONTENT_TYPE} body, got '{content_type or 'none'}'")

    parser = MultiPartParser(headers, stream, max_part_size=max_form_buffer)
    parser.spool_max_size = max_form_buffer
    try:
        return await parser.parse()
    except MultiPartException as e:
        raise MalformedForm(f"invalid multipart body: {e.message}") from e
    except ClientDisconnect as e:
        raise ClientDisconnected("client disconnected before the upload completed") from e

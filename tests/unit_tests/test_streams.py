import pytest
from starlette.datastructures import Headers

from upload2dir.errors import ClientDisconnected, MalformedForm, PayloadTooLarge
from upload2dir.streams import declared_length, limit_stream, parse_multipart
from tests.fixtures.uploads import chunked, disconnecting, multipart_body, multipart_headers


async def _collect(stream):
    return b"".join([chunk async for chunk in stream])


async def test_limit_stream__passes_bodies_up_to_the_limit():
    body = b"x" * 100

    assert await _collect(limit_stream(chunked(body, 30), 100)) == body


async def test_limit_stream__raises_past_the_limit():
    with pytest.raises(PayloadTooLarge):
        await _collect(limit_stream(chunked(b"x" * 101, 30), 100))


@pytest.mark.parametrize("raw, expected", [("42", 42), ("nope", None), (None, None)])
def test_declared_length(raw, expected):
    headers = Headers({"content-length": raw}) if raw is not None else Headers({})

    assert declared_length(headers) == expected


async def test_parse_multipart__spills_large_parts_without_losing_bytes():
    content = bytes(range(256)) * 40

    form = await parse_multipart(
        multipart_headers(), chunked(multipart_body("file", "blob.bin", content)), max_form_buffer=16
    )
    try:
        upload = form["file"]
        assert upload.filename == "blob.bin"
        assert await upload.read() == content
    finally:
        await form.close()


async def test_parse_multipart__rejects_non_multipart_body():
    with pytest.raises(MalformedForm):
        await parse_multipart(Headers({"content-type": "text/plain"}), chunked(b"hello"), 1024)


async def test_parse_multipart__client_disconnect():
    body = multipart_body("file", "blob.bin", b"z" * 500)

    with pytest.raises(ClientDisconnected):
        await parse_multipart(multipart_headers(), disconnecting(body, cut_at=200), 1024)


async def test_parse_multipart__form_fields_share_the_part_ceiling():
    body = (
        b"--upload2dir-test-boundary\r\n"
        b'Content-Disposition: form-data; name="note"\r\n\r\n'
        + b"n" * 100
        + b"\r\n--upload2dir-test-boundary--\r\n"
    )

    with pytest.raises(MalformedForm):
        await parse_multipart(multipart_headers(), chunked(body), max_form_buffer=10)

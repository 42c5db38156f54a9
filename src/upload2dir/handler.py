"""
The upload2dir request handler.

Installed as HTTP middleware in front of the rest of the application. PUT,
DELETE and POST requests are handled here and answered with a result envelope;
every other verb passes straight through. Handled requests still run the next
stage of the pipeline afterwards so it can observe the published metadata in
``request.state.vars``; its own response is discarded.
"""

import logging
import mimetypes
import uuid
from enum import Enum
from pathlib import Path
from string import Template
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.formparsers import MultiPartException
from starlette.requests import ClientDisconnect

from upload2dir import paths
from upload2dir.auth import Action, Authorizer
from upload2dir.config.settings import Settings
from upload2dir.disk import delete_files, directories
from upload2dir.disk.write_files import UploadCommitter
from upload2dir.errors import (
    ClientDisconnected,
    ClientError,
    ConfigError,
    MalformedForm,
    Upload2DirError,
)
from upload2dir.schemas import CommitResult, Destination, ResultEnvelope

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# request.state.vars keys published for downstream stages
VAR_FILENAME = "upload.filename"
VAR_FILESIZE = "upload.filesize"
VAR_MAX_FILESIZE = "upload.max_filesize"

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class Operation(Enum):
    """What a request asks the handler to do, chosen once from its verb."""
    CREATE_DIRECTORY = Action.CREATE_DIR
    DELETE_FILE = Action.DELETE_FILE
    PUT_FILE = Action.PUT_FILE
    PASS_THROUGH = None

    @classmethod
    def from_method(cls, method: str) -> "Operation":
        return _METHOD_OPERATIONS.get(method.upper(), cls.PASS_THROUGH)


_METHOD_OPERATIONS = {
    "POST": Operation.CREATE_DIRECTORY,
    "DELETE": Operation.DELETE_FILE,
    "PUT": Operation.PUT_FILE,
}


class ResponseTemplate:
    """Success page for uploads, `$name` placeholders filled per request."""

    def __init__(self, text: str, media_type: str):
        self.template = Template(text)
        self.media_type = media_type

    @classmethod
    def load(cls, path: Path) -> "ResponseTemplate":
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read response_template {path}: {e}") from e
        media_type, _ = mimetypes.guess_type(path.name)
        return cls(text, media_type or "text/plain")

    def render(self, result: CommitResult) -> Response:
        body = self.template.safe_substitute(
            dir=str(result.destination.path),
            filename=result.upload.declared_filename or "",
            filesize=result.upload.declared_size if result.upload.declared_size is not None else "",
            written_bytes=result.bytes_written,
        )
        return Response(content=body, media_type=self.media_type)


def request_vars(request: Request) -> dict:
    """The request-scoped key/value store shared with downstream stages."""
    if not hasattr(request.state, "vars"):
        request.state.vars = {}
    return request.state.vars


class Upload2DirHandler:
    """Dispatches PUT/DELETE/POST to the upload, delete and mkdir operations."""

    def __init__(
        self,
        settings: Settings,
        authorizer: Authorizer,
        committer: Optional[UploadCommitter] = None,
        response_template: Optional[ResponseTemplate] = None,
    ):
        self.settings = settings
        self.authorizer = authorizer
        self.committer = committer or UploadCommitter.from_settings(settings)
        self.response_template = response_template

    async def __call__(self, request: Request, call_next) -> Response:
        operation = Operation.from_method(request.method)
        if operation is Operation.PASS_THROUGH:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        try:
            if operation is Operation.PUT_FILE:
                response = await self.put_file(request, request_id)
            elif operation is Operation.DELETE_FILE:
                response = await self.delete_file(request, request_id)
            elif operation is Operation.CREATE_DIRECTORY:
                response = await self.create_dir(request, request_id)
            else:
                raise AssertionError(f"unhandled operation {operation}")
        except Upload2DirError as e:
            self._log_failure(request, request_id, operation, e)
            response = JSONResponse(
                status_code=e.status_code,
                content=ResultEnvelope.failure(e.message, e.code).to_body(),
            )
        response.headers[REQUEST_ID_HEADER] = request_id

        await self._forward(request, call_next)
        return response

    async def put_file(self, request: Request, request_id: str) -> Response:
        request_vars(request)[VAR_MAX_FILESIZE] = int(self.settings.max_filesize)

        explicit_dest = self._query_destination(request)
        destination = self._resolve(request, explicit_dest)
        user = self._authorize(request, Action.PUT_FILE)

        result = await self.committer.commit(
            request.stream(), request.headers, destination, target_path_hint=explicit_dest
        )
        logger.info(
            f"[{request_id}] Successful upload by '{user.name}': "
            f"file={result.upload.declared_filename!r} size={result.upload.declared_size} "
            f"written-bytes={result.bytes_written} content-type={result.upload.content_type} "
            f"dest={destination.path}"
        )

        request_vars(request)[VAR_FILENAME] = result.upload.declared_filename
        request_vars(request)[VAR_FILESIZE] = result.upload.declared_size

        if self.response_template is not None:
            return self.response_template.render(result)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=ResultEnvelope.success({
                "dir": str(destination.path),
                "filename": result.upload.declared_filename,
                "written_bytes": result.bytes_written,
            }).to_body(),
        )

    async def delete_file(self, request: Request, request_id: str) -> Response:
        destination = self._resolve(request, self._query_destination(request))
        user = self._authorize(request, Action.DELETE_FILE)

        await run_in_threadpool(delete_files.delete_file, destination.path)
        logger.info(f"[{request_id}] '{user.name}' deleted {destination.path}")
        return JSONResponse(status_code=status.HTTP_200_OK, content=ResultEnvelope.success().to_body())

    async def create_dir(self, request: Request, request_id: str) -> Response:
        destination = self._resolve(request, await self._form_destination(request))
        user = self._authorize(request, Action.CREATE_DIR)

        await run_in_threadpool(directories.create_directory, destination.path)
        logger.info(f"[{request_id}] '{user.name}' created directory {destination.path}")
        return JSONResponse(status_code=status.HTTP_200_OK, content=ResultEnvelope.success().to_body())

    def _resolve(self, request: Request, explicit_dest: Optional[str]) -> Destination:
        return paths.resolve(self.settings.file_server_root, request.url.path, explicit_dest)

    def _authorize(self, request: Request, action: Action):
        token = request.cookies.get(self.settings.user_token_cookie_key)
        return self.authorizer.authorize(token, action)

    def _query_destination(self, request: Request) -> Optional[str]:
        field = self.settings.dest_field
        if not field:
            return None
        return request.query_params.get(field) or None

    async def _form_destination(self, request: Request) -> Optional[str]:
        """Destination field from the query string, else from a form body."""
        field = self.settings.dest_field
        if not field:
            return None
        value = self._query_destination(request)
        if value:
            return value

        content_type = request.headers.get("content-type", "")
        if not content_type.startswith(FORM_CONTENT_TYPES):
            return None
        try:
            form = await request.form(max_part_size=int(self.settings.max_form_buffer))
        except MultiPartException as e:
            raise MalformedForm(f"invalid form body: {e.message}") from e
        except ClientDisconnect as e:
            raise ClientDisconnected("client disconnected before the form was received") from e
        try:
            value = form.get(field)
        finally:
            await form.close()
        return value if isinstance(value, str) and value else None

    async def _forward(self, request: Request, call_next) -> None:
        """Run the next pipeline stage; its response is drained and dropped."""
        downstream = await call_next(request)
        async for _ in downstream.body_iterator:
            pass

    def _log_failure(
        self, request: Request, request_id: str, operation: Operation, error: Upload2DirError
    ) -> None:
        message = (
            f"[{request_id}] {operation.name} {request.method} {request.url.path} "
            f"failed with {type(error).__name__}: {error.message}"
        )
        if isinstance(error, ClientError):
            logger.warning(message)
        else:
            logger.error(message, exc_info=error)

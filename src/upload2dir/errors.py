"""Error taxonomy of the gateway and the app-level exception handlers."""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

FAILURE_CODE = -1


class Upload2DirError(Exception):
    """Base class for every failure that ends up in a failure envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: int = FAILURE_CODE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(Upload2DirError):
    """Invalid configuration. Fatal at startup, never raised while serving."""


###########################
# --- Client errors --- #
###########################

class ClientError(Upload2DirError):
    status_code = status.HTTP_400_BAD_REQUEST


class AccessDenied(ClientError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "access denied"):
        super().__init__(message)


class PayloadTooLarge(ClientError):
    status_code = 413


class MissingFilePart(ClientError):
    pass


class MalformedForm(ClientError):
    pass


class PathOutsideRoot(ClientError):
    pass


class ClientDisconnected(ClientError):
    pass


class AlreadyExists(ClientError):
    status_code = status.HTTP_409_CONFLICT


###########################
# --- Server errors --- #
###########################

class ServerError(Upload2DirError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class DirectoryCreateFailed(ServerError):
    pass


class BackupRenameFailed(ServerError):
    pass


class FileOpenFailed(ServerError):
    pass


class StreamCopyFailed(ServerError):
    pass


class CreateFailed(ServerError):
    pass


class DeleteFailed(ServerError):
    pass


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception:  # pylint: disable=broad-except
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"code": FAILURE_CODE, "message": "Internal server error"},
        )

from textwrap import dedent
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.routing import APIRoute

from upload2dir import __version__
from upload2dir.auth import Authorizer
from upload2dir.config.settings import Settings, get_settings
from upload2dir.disk.directories import ensure_directory
from upload2dir.errors import ConfigError, DirectoryCreateFailed, handle_broad_exceptions
from upload2dir.handler import ResponseTemplate, Upload2DirHandler
from upload2dir.routers.health import router as health_router

# Set up logging
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("upload2dir").setLevel(level)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the upload2dir FastAPI application.

    :raises ConfigError: if the configuration cannot be turned into a running
        gateway (unreadable user table or template, root not creatable).
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    try:
        ensure_directory(settings.file_server_root)
    except DirectoryCreateFailed as e:
        raise ConfigError(f"file_server_root is not usable: {e.message}") from e

    authorizer = Authorizer.from_settings(settings)
    response_template = None
    if settings.response_template is not None:
        response_template = ResponseTemplate.load(settings.response_template)

    app = FastAPI(
        title="upload2dir",
        summary="Write uploaded files into a directory tree",
        version=__version__,
        description=dedent(
            """\
        | Verb | Effect |
        | --- | --- |
        | `PUT /<path>` | store the multipart part `file_field_name` at `<path>`, backing up the previous version |
        | `POST /<path>` | create the directory `<path>` |
        | `DELETE /<path>` | delete the file `<path>` |
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
    )
    app.state.settings = settings
    app.state.authorizer = authorizer

    app.include_router(health_router, tags=["health"])

    # the upload handler must sit inside the broad exception handler
    app.middleware("http")(Upload2DirHandler(settings, authorizer, response_template=response_template))
    app.middleware("http")(handle_broad_exceptions)

    logger.info(f"Current config: version={__version__} {settings.describe()}")
    if authorizer.enabled:
        logger.info(f"Authorization enabled with {authorizer.user_count} users")
    else:
        logger.warning("Authorization disabled: every caller may create, delete and upload")

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if not route.tags:
        return route.name
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)

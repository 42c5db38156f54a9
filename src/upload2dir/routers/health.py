import os

from fastapi import APIRouter, Request

from upload2dir import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring gateway readiness.

    Reports whether the file server root exists and is writable, and whether
    authorization is enforced.
    """
    settings = request.app.state.settings
    authorizer = request.app.state.authorizer
    root = settings.file_server_root

    if not os.path.isdir(root):
        root_status = "missing"
    elif not os.access(root, os.W_OK | os.X_OK):
        root_status = "read-only"
    else:
        root_status = "ready"

    return {
        "status": "ok" if root_status == "ready" else "degraded",
        "version": __version__,
        "components": {
            "root": root_status,
        },
        "authorization": "enabled" if authorizer.enabled else "disabled",
        "ready": root_status == "ready",
    }

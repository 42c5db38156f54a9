"""Directory operations on the file server tree."""

import logging
import os
from pathlib import Path
from typing import Union

from upload2dir.errors import AlreadyExists, CreateFailed, DirectoryCreateFailed

logger = logging.getLogger(__name__)


def create_directory(path: Union[str, Path]) -> None:
    """
    Create a directory and any missing parents.

    :param path: The directory to create.
    :raises AlreadyExists: if a directory is already present at `path`.
    :raises CreateFailed: on any OS error (permissions, a file in the way, disk full).
    """
    if os.path.isdir(path):
        raise AlreadyExists(f"dir {path} exists")
    try:
        os.makedirs(path)
    except OSError as e:
        raise CreateFailed(f"mkdir {path} error: {e}") from e
    logger.info(f"Created directory {path}")


def ensure_directory(path: Union[str, Path]) -> None:
    """
    Make sure `path` exists as a directory, creating it when missing.

    :raises DirectoryCreateFailed: if it cannot be created.
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise DirectoryCreateFailed(f"mkdirall {path} error: {e}") from e

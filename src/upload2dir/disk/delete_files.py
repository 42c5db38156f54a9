"""Functions for deleting files from the file server tree--the "D" in CRUD."""

import logging
import os
from pathlib import Path
from typing import Union

from upload2dir.errors import DeleteFailed

logger = logging.getLogger(__name__)


def delete_file(path: Union[str, Path]) -> None:
    """
    Remove a single file.

    Directories are not removed. A missing file and a file we may not remove
    both surface as the same `DeleteFailed`.

    :param path: The file to delete.
    """
    try:
        os.remove(path)
    except OSError as e:
        raise DeleteFailed(f"delete {path} error: {e}") from e
    logger.info(f"Deleted file {path}")

"""Destination resolution with containment inside the configured root."""

import os
from pathlib import Path
from typing import Optional, Union

from upload2dir.errors import PathOutsideRoot
from upload2dir.schemas import Destination


def resolve(
    root: Union[str, Path],
    request_path: str,
    explicit_dest: Optional[str] = None,
) -> Destination:
    """
    Derive the destination of a request.

    :param root: The configured file server root.
    :param request_path: The (already percent-decoded) URL path of the request.
    :param explicit_dest: Value of the destination form/query field, if any. Relative
        values are taken relative to `root`; absolute values must point inside it.
    :raises PathOutsideRoot: if the target canonicalizes to a location outside `root`.
    """
    target = explicit_dest if explicit_dest else request_path
    if "\x00" in target:
        raise PathOutsideRoot(f"invalid path {target!r}")

    real_root = os.path.realpath(root)
    if explicit_dest and os.path.isabs(explicit_dest):
        candidate = explicit_dest
    else:
        candidate = os.path.join(real_root, target.lstrip("/"))

    head, filename = os.path.split(candidate.rstrip("/"))
    if filename in (".", ".."):
        raise PathOutsideRoot(f"path {target} does not name a file")

    if os.path.normpath(candidate) == real_root:
        directory, filename = os.path.split(real_root)
        return Destination(directory=Path(directory), filename=filename)

    if not filename:
        raise PathOutsideRoot(f"path {target} does not name a file")

    # the last segment is kept as given so a symlink there is acted on, not followed
    directory = os.path.realpath(head)
    if os.path.commonpath([real_root, directory]) != real_root:
        raise PathOutsideRoot(f"path {target} resolves outside of the file server root")

    return Destination(directory=Path(directory), filename=filename)

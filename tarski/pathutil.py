from __future__ import annotations

import os

from .errors import UnsafePathError


def entry_name(path: str, prefix: str, is_dir: bool) -> str:
    """Turn a visited filesystem path into an archive entry name.

    Rules:
    - Strip ``prefix`` from the start of ``path``
    - An empty result (or a lone "/") means "skip this entry"
    - Drop one leading slash
    - Directories end with a slash
    """
    name = path[len(prefix):] if prefix and path.startswith(prefix) else path
    if name in ("", "/"):
        return ""
    if name.startswith("/"):
        name = name[1:]
    if is_dir and not name.endswith("/"):
        name += "/"
    return name


def dest_path(root: str, name: str) -> str:
    """Resolve an archive entry name below the extraction root.

    Leading slashes, empty and '.' segments are dropped; '..' is rejected.
    Symlinks already present below ``root`` are never walked through or
    written over, so an earlier link entry cannot redirect a later one.
    """
    parts = [q for q in name.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise UnsafePathError(f"Entry name may not contain '..': {name!r}")
    cur = root
    for q in parts:
        cur = os.path.join(cur, q)
        if os.path.islink(cur):
            raise UnsafePathError(f"Entry name goes through a symlink: {name!r}")
    return cur

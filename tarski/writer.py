from __future__ import annotations

import os
import stat
import tarfile
from typing import BinaryIO, Iterator, Optional, Tuple

from .constants import KIND_FILE, TAR_ENCODING, TAR_ERRORS
from .entry import Entry, build_entry
from .errors import TraversalError
from .hashutil import HashingWriter, new_digest
from .pathutil import entry_name


def walk(root: str) -> Iterator[Tuple[str, os.stat_result]]:
    """Yield ``(path, lstat)`` for ``root`` and everything below it.

    Depth-first, parents before children, children in sorted name order.
    Symlinks are reported, never followed. The order only depends on the
    names in the tree, which is what makes stream checksums reproducible.
    """
    stack = [root]
    while stack:
        path = stack.pop()
        try:
            st = os.lstat(path)
        except OSError as exc:
            raise TraversalError(path, exc) from exc
        yield path, st
        if not stat.S_ISDIR(st.st_mode):
            continue
        try:
            names = sorted(os.listdir(path))
        except OSError as exc:
            raise TraversalError(path, exc) from exc
        # Reversed so the smallest name is popped first.
        stack.extend(os.path.join(path, name) for name in reversed(names))


def write_header(tar: tarfile.TarFile, fs_path: str, name: str, st: Optional[os.stat_result] = None) -> Entry:
    """Write one filesystem object to ``tar``: its header and, for regular files, its content.

    The content must still be exactly the size recorded in the header;
    a file that grew or shrank since it was stat'ed raises TraversalError.
    """
    e = build_entry(fs_path, name, st)
    info = e.to_tarinfo()
    if e.kind != KIND_FILE:
        tar.addfile(info)
        return e
    try:
        fh = open(fs_path, "rb")
    except OSError as exc:
        raise TraversalError(fs_path, exc) from exc
    with fh:
        try:
            tar.addfile(info, fh)
            extra = fh.read(1)
        except OSError as exc:
            raise TraversalError(fs_path, exc) from exc
    if extra:
        raise TraversalError(fs_path, f"file grew past {info.size} bytes while being archived")
    return e


def _write_tree(fileobj: BinaryIO, path: str, prefix: str, skip: Optional[os.stat_result] = None) -> None:
    # Stream mode: the codec only ever calls fileobj.write(), so any sink works.
    with tarfile.open(
        fileobj=fileobj,
        mode="w|",
        format=tarfile.PAX_FORMAT,
        encoding=TAR_ENCODING,
        errors=TAR_ERRORS,
    ) as tar:
        for fs_path, st in walk(path):
            if skip is not None and os.path.samestat(st, skip):
                continue
            name = entry_name(fs_path, prefix, stat.S_ISDIR(st.st_mode))
            if not name:
                continue
            write_header(tar, fs_path, name, st)


def create(archive: str, path: str, prefix: str) -> None:
    """Create the tar archive ``archive`` from the tree at ``path``.

    Args:
        archive: Output archive path (created or truncated).
        path: Root of the tree to store.
        prefix: Leading part of every visited path to strip from entry names.
            The entry equal to the prefix itself is omitted.

    Raises:
        TraversalError: A path in the tree could not be read.
        UnsupportedEntryError: The tree contains a socket or similar.
        XattrChangedError, XattrValueError: Extended attributes were inconsistent.
    """
    with open(archive, "wb") as fh:
        _write_tree(fh, path, prefix, skip=os.fstat(fh.fileno()))


def create_sha256(archive: str, path: str, prefix: str) -> bytes:
    """Create an archive like :func:`create` and return the SHA-256 of its byte stream.

    The digest is computed in the same pass, over exactly the bytes written,
    so it equals a hash of the finished file without reading it back.
    """
    digest = new_digest("sha256")
    with open(archive, "wb") as fh:
        _write_tree(HashingWriter(fh, digest), path, prefix, skip=os.fstat(fh.fileno()))
    return digest.digest()

from __future__ import annotations

import os
import tarfile
import time
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple

from .constants import (
    COPY_BUFSIZE,
    KIND_FILE,
    KIND_DIR,
    KIND_SYMLINK,
    KIND_CHAR,
    KIND_BLOCK,
    KIND_FIFO,
    TAR_ENCODING,
    TAR_ERRORS,
)
from .entry import Entry
from .errors import PayloadSizeMismatch
from .hashutil import HashingReader, new_digest
from .pathutil import dest_path
from .xattr import set_all_xattrs


def _open_stream(fileobj: BinaryIO) -> tarfile.TarFile:
    return tarfile.open(fileobj=fileobj, mode="r|", encoding=TAR_ENCODING, errors=TAR_ERRORS)


def _zero_length(fh: BinaryIO) -> bool:
    # tarfile rejects a 0-byte file outright; for us it is simply an empty stream.
    return os.fstat(fh.fileno()).st_size == 0


def _make_parents(dst: str) -> None:
    parent = os.path.dirname(dst)
    if parent:
        os.makedirs(parent, exist_ok=True)


def _copy_payload(src: Optional[BinaryIO], dst: BinaryIO) -> int:
    if src is None:
        return 0
    written = 0
    while True:
        buf = src.read(COPY_BUFSIZE)
        if not buf:
            return written
        dst.write(buf)
        written += len(buf)


def extract_dir(path: str, e: Entry, payload: Optional[BinaryIO] = None) -> None:
    """Create a directory entry under ``path`` and restore its owner, xattrs and mtime.

    The directory keeps owner rwx until the final pass of the extraction
    applies the recorded mode.
    """
    dst = dest_path(path, e.name)
    os.makedirs(dst, e.mode | 0o700, exist_ok=True)
    os.chown(dst, e.uid, e.gid)
    set_all_xattrs(dst, e.xattrs)
    os.utime(dst, (time.time(), e.mtime))


def extract_reg(path: str, e: Entry, payload: Optional[BinaryIO] = None) -> None:
    """Create a regular file exclusively and fill it with exactly ``e.size`` bytes.

    Raises:
        FileExistsError: The destination already exists; it is left untouched.
        PayloadSizeMismatch: The bytes written differ from the header size.
    """
    dst = dest_path(path, e.name)
    _make_parents(dst)
    with open(dst, "xb") as out:
        written = _copy_payload(payload, out)
        out.flush()
        on_disk = os.fstat(out.fileno()).st_size
        if written != e.size or on_disk != e.size:
            raise PayloadSizeMismatch(dst, e.size, written)
    os.chown(dst, e.uid, e.gid)
    # Before chmod: setting user.* attributes needs write permission.
    set_all_xattrs(dst, e.xattrs)
    os.chmod(dst, e.mode)
    os.utime(dst, (e.mtime, e.mtime))


def extract_symlink(path: str, e: Entry, payload: Optional[BinaryIO] = None) -> None:
    """Create a symlink; owner and times are set on the link, never its target."""
    dst = dest_path(path, e.name)
    _make_parents(dst)
    os.symlink(e.linkname, dst)
    os.chown(dst, e.uid, e.gid, follow_symlinks=False)
    os.utime(dst, (time.time(), e.mtime), follow_symlinks=False)


def extract_dev(path: str, e: Entry, payload: Optional[BinaryIO] = None) -> None:
    """Stand in for a character or block device with an empty regular file.

    Creating real device nodes needs privileges this library does not assume.
    """
    dst = dest_path(path, e.name)
    _make_parents(dst)
    with open(dst, "xb"):
        pass
    os.chown(dst, e.uid, e.gid)
    os.chmod(dst, e.mode)
    os.utime(dst, (e.mtime, e.mtime))


EXTRACTORS: Dict[int, Callable[[str, Entry, Optional[BinaryIO]], None]] = {
    KIND_DIR: extract_dir,
    KIND_SYMLINK: extract_symlink,
    KIND_CHAR: extract_dev,
    KIND_BLOCK: extract_dev,
    KIND_FIFO: extract_reg,
    KIND_FILE: extract_reg,
}


def _extract_stream(fileobj: BinaryIO, path: str) -> None:
    dirs: List[Tuple[str, Entry]] = []
    with _open_stream(fileobj) as tar:
        for info in tar:
            e = Entry.from_tarinfo(info)
            payload = None
            if e.kind == KIND_FILE and not info.islnk():
                payload = tar.extractfile(info)
            EXTRACTORS[e.kind](path, e, payload)
            if e.kind == KIND_DIR:
                dirs.append((dest_path(path, e.name), e))
    # Children are in place: apply directory modes and mtimes deepest first.
    for dst, e in reversed(dirs):
        os.chmod(dst, e.mode)
        os.utime(dst, (time.time(), e.mtime))


def extract(archive: str, path: str) -> None:
    """Extract ``archive`` below ``path``.

    Entries already written are not removed when a later entry fails; the
    caller must discard the destination tree in that case. Directories in
    such a partial tree keep owner rwx and may show a newer mtime, because
    their recorded mode and mtime are only applied once the whole stream
    has been read.
    """
    with open(archive, "rb") as fh:
        if _zero_length(fh):
            return
        _extract_stream(fh, path)


def extract_sha256(archive: str, path: str) -> bytes:
    """Extract like :func:`extract` and return the SHA-256 of the archive byte stream.

    Matches the digest returned by :func:`tarski.writer.create_sha256` for
    the same archive.
    """
    digest = new_digest("sha256")
    with open(archive, "rb") as fh:
        if _zero_length(fh):
            return digest.digest()
        tap = HashingReader(fh, digest)
        _extract_stream(tap, path)
        tap.drain()
    return digest.digest()


def is_empty(archive: str) -> bool:
    """Return True when ``archive`` holds no entries at all."""
    with open(archive, "rb") as fh:
        if _zero_length(fh):
            return True
        with _open_stream(fh) as tar:
            return tar.next() is None


def list_entries(archive: str) -> List[Entry]:
    """Read every header of ``archive`` without extracting anything."""
    with open(archive, "rb") as fh:
        if _zero_length(fh):
            return []
        with _open_stream(fh) as tar:
            return [Entry.from_tarinfo(info) for info in tar]

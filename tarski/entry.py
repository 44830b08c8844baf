from __future__ import annotations

import os
import stat
import tarfile
from dataclasses import dataclass, field
from typing import Dict, Optional

try:
    import grp
    import pwd
except ImportError:  # pragma: no cover - non-POSIX
    grp = None
    pwd = None

from .constants import (
    KIND_FILE,
    KIND_DIR,
    KIND_SYMLINK,
    KIND_CHAR,
    KIND_BLOCK,
    KIND_FIFO,
    STAT_KINDS,
    PAX_XATTR_PREFIX,
    TAR_ENCODING,
    TAR_ERRORS,
)
from .errors import TraversalError, UnsupportedEntryError
from .xattr import get_all_xattrs


_KIND_TO_TARTYPE = {
    KIND_FILE: tarfile.REGTYPE,
    KIND_DIR: tarfile.DIRTYPE,
    KIND_SYMLINK: tarfile.SYMTYPE,
    KIND_CHAR: tarfile.CHRTYPE,
    KIND_BLOCK: tarfile.BLKTYPE,
    KIND_FIFO: tarfile.FIFOTYPE,
}

# Every other tar type (regular, hard link, contiguous, unknown) extracts as a regular file.
_TARTYPE_TO_KIND = {
    tarfile.DIRTYPE: KIND_DIR,
    tarfile.SYMTYPE: KIND_SYMLINK,
    tarfile.CHRTYPE: KIND_CHAR,
    tarfile.BLKTYPE: KIND_BLOCK,
    tarfile.FIFOTYPE: KIND_FIFO,
}


@dataclass
class Entry:
    name: str
    kind: int  # one of constants.ALL_KINDS
    mode: int = 0
    uid: int = 0
    gid: int = 0
    uname: str = ""
    gname: str = ""
    mtime: float = 0
    size: int = 0
    linkname: str = ""
    devmajor: int = 0
    devminor: int = 0
    xattrs: Dict[str, bytes] = field(default_factory=dict)

    def to_tarinfo(self) -> tarfile.TarInfo:
        """Build the tar header for this entry; xattrs become SCHILY.xattr PAX records."""
        info = tarfile.TarInfo(self.name)
        info.type = _KIND_TO_TARTYPE[self.kind]
        info.mode = self.mode
        info.uid = self.uid
        info.gid = self.gid
        info.uname = self.uname
        info.gname = self.gname
        info.mtime = self.mtime
        info.size = self.size if self.kind == KIND_FILE else 0
        info.linkname = self.linkname if self.kind == KIND_SYMLINK else ""
        if self.kind in (KIND_CHAR, KIND_BLOCK):
            info.devmajor = self.devmajor
            info.devminor = self.devminor
        # Sorted so the header bytes do not depend on the kernel's listing order.
        info.pax_headers = {
            PAX_XATTR_PREFIX + name: self.xattrs[name].decode(TAR_ENCODING, TAR_ERRORS)
            for name in sorted(self.xattrs)
        }
        return info

    @classmethod
    def from_tarinfo(cls, info: tarfile.TarInfo) -> "Entry":
        kind = _TARTYPE_TO_KIND.get(info.type, KIND_FILE)
        name = info.name
        if kind == KIND_DIR and not name.endswith("/"):
            name += "/"
        xattrs = {
            key[len(PAX_XATTR_PREFIX):]: value.encode(TAR_ENCODING, TAR_ERRORS)
            for key, value in info.pax_headers.items()
            if key.startswith(PAX_XATTR_PREFIX)
        }
        return cls(
            name=name,
            kind=kind,
            mode=info.mode,
            uid=info.uid,
            gid=info.gid,
            uname=info.uname,
            gname=info.gname,
            mtime=info.mtime,
            size=info.size if kind == KIND_FILE else 0,
            linkname=info.linkname if kind == KIND_SYMLINK else "",
            devmajor=info.devmajor,
            devminor=info.devminor,
            xattrs=xattrs,
        )


def _owner_names(uid: int, gid: int) -> tuple[str, str]:
    uname = gname = ""
    if pwd is not None:
        try:
            uname = pwd.getpwuid(uid).pw_name
        except KeyError:
            pass
    if grp is not None:
        try:
            gname = grp.getgrgid(gid).gr_name
        except KeyError:
            pass
    return uname, gname


def build_entry(fs_path: str, name: str, st: Optional[os.stat_result] = None) -> Entry:
    """Describe one filesystem object as an archive Entry.

    Args:
        fs_path: Path on disk (never followed if it is a symlink).
        name: Archive entry name, as produced by pathutil.entry_name.
        st: lstat result for ``fs_path``; taken here when omitted.

    Raises:
        UnsupportedEntryError: Sockets and other types tar cannot describe.
        TraversalError: stat, readlink or xattr retrieval failed with an OSError.
        XattrChangedError, XattrValueError: xattrs were inconsistent.
    """
    try:
        if st is None:
            st = os.lstat(fs_path)
        kind = STAT_KINDS.get(stat.S_IFMT(st.st_mode))
        if kind is None:
            raise UnsupportedEntryError(fs_path, stat.S_IFMT(st.st_mode))
        linkname = os.readlink(fs_path) if kind == KIND_SYMLINK else ""
        xattrs = get_all_xattrs(fs_path) or {}
    except OSError as exc:
        raise TraversalError(fs_path, exc) from exc
    uname, gname = _owner_names(st.st_uid, st.st_gid)
    e = Entry(
        name=name,
        kind=kind,
        mode=st.st_mode & 0o7777,
        uid=st.st_uid,
        gid=st.st_gid,
        uname=uname,
        gname=gname,
        mtime=int(st.st_mtime),
        size=st.st_size if kind == KIND_FILE else 0,
        linkname=linkname,
        xattrs=xattrs,
    )
    if kind in (KIND_CHAR, KIND_BLOCK):
        e.devmajor = os.major(st.st_rdev)
        e.devminor = os.minor(st.st_rdev)
    return e

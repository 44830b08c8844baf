"""Extended attribute access with a strict two-phase size/fetch protocol.

The ``os`` module hides the size query behind ``os.listxattr``/``os.getxattr``,
so this module calls the libc entry points directly through ctypes. Every
listing and value fetch first asks the kernel for the required buffer size and
then fetches into a buffer of exactly that size. If the two observations
disagree the attributes were modified concurrently and the call fails with
:class:`XattrChangedError` instead of returning a truncated or stale map.

Listing and fetching never follow symbolic links.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import errno
import os
import sys
from typing import Callable, Dict, Optional

from .constants import XATTR_NOFOLLOW
from .errors import XattrChangedError, XattrValueError


_DARWIN = sys.platform == "darwin"

_libc = None
if sys.platform.startswith("linux") or _DARWIN:
    _libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)
    if _DARWIN:
        _libc.listxattr.argtypes = [ctypes.c_char_p, ctypes.c_void_p, ctypes.c_size_t, ctypes.c_int]
        _libc.listxattr.restype = ctypes.c_ssize_t
        _libc.getxattr.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_void_p, ctypes.c_size_t, ctypes.c_uint32, ctypes.c_int]
        _libc.getxattr.restype = ctypes.c_ssize_t
        _libc.setxattr.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_char_p, ctypes.c_size_t, ctypes.c_uint32, ctypes.c_int]
        _libc.setxattr.restype = ctypes.c_int
    else:
        _libc.llistxattr.argtypes = [ctypes.c_char_p, ctypes.c_void_p, ctypes.c_size_t]
        _libc.llistxattr.restype = ctypes.c_ssize_t
        _libc.lgetxattr.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_void_p, ctypes.c_size_t]
        _libc.lgetxattr.restype = ctypes.c_ssize_t
        _libc.setxattr.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_char_p, ctypes.c_size_t, ctypes.c_int]
        _libc.setxattr.restype = ctypes.c_int


def _check(ret: int, path: bytes) -> int:
    if ret < 0:
        err = ctypes.get_errno()
        raise OSError(err, os.strerror(err), os.fsdecode(path))
    return ret


def _require_libc():
    if _libc is None:
        raise OSError(errno.ENOTSUP, "extended attributes are not supported on this platform")
    return _libc


# Raw syscall wrappers. ``buf`` is None for the size query.

def _llistxattr(path: bytes, buf, size: int) -> int:
    libc = _require_libc()
    if _DARWIN:
        return _check(libc.listxattr(path, buf, size, XATTR_NOFOLLOW), path)
    return _check(libc.llistxattr(path, buf, size), path)


def _lgetxattr(path: bytes, name: bytes, buf, size: int) -> int:
    libc = _require_libc()
    if _DARWIN:
        return _check(libc.getxattr(path, name, buf, size, 0, XATTR_NOFOLLOW), path)
    return _check(libc.lgetxattr(path, name, buf, size), path)


def _setxattr(path: bytes, name: bytes, value: bytes) -> None:
    libc = _require_libc()
    if _DARWIN:
        _check(libc.setxattr(path, name, value, len(value), 0, 0), path)
    else:
        _check(libc.setxattr(path, name, value, len(value), 0), path)


def _query_then_fetch(path: bytes, call: Callable[[Optional[ctypes.Array], int], int]) -> bytes:
    """Run one size query followed by one fetch; never retries.

    Returns b"" when the size query reports zero bytes. A fetch that returns
    a different size, or fails with ERANGE because the data grew, raises
    XattrChangedError.
    """
    pre = call(None, 0)
    if pre == 0:
        return b""
    buf = ctypes.create_string_buffer(pre)
    try:
        post = call(buf, pre)
    except OSError as exc:
        if exc.errno == errno.ERANGE:
            raise XattrChangedError(os.fsdecode(path)) from exc
        raise
    if post != pre:
        raise XattrChangedError(os.fsdecode(path))
    return buf.raw[:post]


def get_all_xattrs(path: str) -> Optional[Dict[str, bytes]]:
    """Return every extended attribute of ``path`` (the link itself for symlinks).

    Returns None when the path carries no extended attributes.

    Raises:
        XattrChangedError: The attribute list or a value changed between the
            size query and the fetch.
        XattrValueError: A listed attribute reports a zero-length value.
        OSError: The underlying syscall failed.
    """
    p = os.fsencode(path)
    raw = _query_then_fetch(p, lambda buf, size: _llistxattr(p, buf, size))
    if not raw:
        return None
    # The list looks like b"user.a\0security.b\0"; the terminator leaves a trailing empty token.
    names = raw.split(b"\x00")
    if names[-1] == b"":
        names = names[:-1]
    xattrs: Dict[str, bytes] = {}
    for name in names:
        value = _query_then_fetch(p, lambda buf, size, n=name: _lgetxattr(p, n, buf, size))
        if not value:
            raise XattrValueError(path, os.fsdecode(name))
        xattrs[os.fsdecode(name)] = value
    return xattrs


def set_all_xattrs(path: str, xattrs: Optional[Dict[str, bytes]]) -> None:
    """Set every attribute in ``xattrs`` on ``path``; the first failure propagates."""
    if not xattrs:
        return
    p = os.fsencode(path)
    for name, value in xattrs.items():
        _setxattr(p, os.fsencode(name), value)

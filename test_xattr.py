from __future__ import annotations

import ctypes
import errno
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from tarski.errors import XattrChangedError, XattrValueError
from tarski.xattr import get_all_xattrs, set_all_xattrs


def _fake_syscall(payload: bytes, sizes):
    """Stand-in for _llistxattr/_lgetxattr: reports ``sizes`` in turn and fills the buffer from ``payload``."""
    it = iter(sizes)

    def call(*args):
        buf, size = args[-2], args[-1]
        n = next(it)
        if isinstance(n, BaseException):
            raise n
        if buf is not None:
            ctypes.memmove(buf, payload, min(n, size, len(payload)))
        return n

    return call


def _values(table):
    """Fake _lgetxattr answering from ``{name: value}``; each value is asked for twice."""
    def call(path, name, buf, size):
        value = table[name]
        if buf is not None:
            ctypes.memmove(buf, value, min(len(value), size))
        return len(value)

    return call


class TwoPhaseProtocolTests(unittest.TestCase):
    def test_no_attributes_returns_none(self):
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(b"", [0])) as ll:
            self.assertIsNone(get_all_xattrs("/some/path"))
        self.assertEqual(1, ll.call_count)

    def test_names_parsed_and_trailing_terminator_dropped(self):
        names = b"user.a\x00user.bb\x00"
        table = {b"user.a": b"A", b"user.bb": b"BB"}
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(names, [len(names), len(names)])), \
                mock.patch("tarski.xattr._lgetxattr", side_effect=_values(table)):
            self.assertEqual({"user.a": b"A", "user.bb": b"BB"}, get_all_xattrs("/some/path"))

    def test_list_shrinking_between_calls_fails(self):
        names = b"user.a\x00user.bb\x00"
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(names, [len(names), 7])):
            with self.assertRaises(XattrChangedError):
                get_all_xattrs("/some/path")

    def test_list_growing_between_calls_fails(self):
        grown = OSError(errno.ERANGE, os.strerror(errno.ERANGE))
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(b"user.a\x00", [7, grown])):
            with self.assertRaises(XattrChangedError):
                get_all_xattrs("/some/path")

    def test_value_size_mismatch_fails(self):
        names = b"user.a\x00"
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(names, [7, 7])), \
                mock.patch("tarski.xattr._lgetxattr", side_effect=_fake_syscall(b"value", [5, 3])):
            with self.assertRaises(XattrChangedError):
                get_all_xattrs("/some/path")

    def test_zero_length_value_is_an_error(self):
        names = b"user.a\x00"
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(names, [7, 7])), \
                mock.patch("tarski.xattr._lgetxattr", side_effect=_fake_syscall(b"", [0])):
            with self.assertRaises(XattrValueError) as ctx:
                get_all_xattrs("/some/path")
        self.assertEqual("user.a", ctx.exception.name)

    def test_other_errors_propagate(self):
        denied = OSError(errno.EACCES, os.strerror(errno.EACCES))
        with mock.patch("tarski.xattr._llistxattr", side_effect=_fake_syscall(b"", [denied])):
            with self.assertRaises(PermissionError):
                get_all_xattrs("/some/path")

    def test_set_all_stops_at_first_failure(self):
        failure = OSError(errno.EPERM, os.strerror(errno.EPERM))
        attrs = {"user.a": b"1", "user.b": b"2", "user.c": b"3"}
        with mock.patch("tarski.xattr._setxattr", side_effect=[None, failure, None]) as sx:
            with self.assertRaises(PermissionError):
                set_all_xattrs("/some/path", attrs)
        self.assertEqual(2, sx.call_count)

    def test_set_all_with_nothing_to_set(self):
        with mock.patch("tarski.xattr._setxattr") as sx:
            set_all_xattrs("/some/path", None)
            set_all_xattrs("/some/path", {})
        sx.assert_not_called()


class FilesystemXattrTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.base = Path(tmp.name)
        self.file = self.base / "xattrs.txt"
        self.file.write_text("payload")
        if not hasattr(os, "setxattr"):
            self.skipTest("os.setxattr unavailable")
        try:
            os.setxattr(self.file, "user.probe", b"1")
            os.removexattr(self.file, "user.probe")
        except OSError:
            self.skipTest("filesystem does not support user extended attributes")

    def test_get_all_xattrs_reads_values(self):
        os.setxattr(self.file, "user.checksum", b"asdfsf13434qwf1324")
        found = get_all_xattrs(str(self.file))
        self.assertIsNotNone(found)
        self.assertEqual(b"asdfsf13434qwf1324", found["user.checksum"])

    def test_set_all_xattrs_then_read_back(self):
        set_all_xattrs(str(self.file), {"user.one": b"1", "user.bin": b"\xff\x00\x01"})
        self.assertEqual(b"1", os.getxattr(self.file, "user.one"))
        found = get_all_xattrs(str(self.file))
        self.assertEqual(b"\xff\x00\x01", found["user.bin"])

    def test_symlink_listing_does_not_follow(self):
        os.setxattr(self.file, "user.target", b"only on target")
        link = self.base / "link"
        os.symlink(self.file.name, link)
        found = get_all_xattrs(str(link)) or {}
        self.assertNotIn("user.target", found)


if __name__ == "__main__":
    unittest.main()

"""
tarski: tar archives that keep extended attributes, with stream content hashes.

Features:

- Deterministic archive creation: depth-first walk in sorted name order,
  entry names relative to a stripped prefix, directories suffixed with "/".
- Extended attributes on files, directories and symlinks are stored as
  SCHILY.xattr.* PAX records and restored on extraction.
- Ownership, permission bits and modification times are restored for
  directories, regular files, symlinks and (placeholder) device files.
- SHA-256 content hashes computed over the tar byte stream while it is
  written or read, so equal trees give equal digests without a second pass.

The tar codec itself is the standard library tarfile module.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "writer",
    "reader",
    "xattr",
    "create",
    "create_sha256",
    "extract",
    "extract_sha256",
    "is_empty",
    "get_all_xattrs",
]

from .writer import create, create_sha256
from .reader import extract, extract_sha256, is_empty
from .xattr import get_all_xattrs

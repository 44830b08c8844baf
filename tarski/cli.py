from __future__ import annotations

import os
import sys
import time
import argparse
import tarfile

from typing import List, Optional

from tarski.constants import KIND_NAMES, KIND_FILE, KIND_SYMLINK
from tarski.errors import TarskiError, XattrChangedError
from tarski.reader import extract, extract_sha256, is_empty, list_entries
from tarski.writer import create, create_sha256
from tarski.xattr import get_all_xattrs


def cmd_create(archive: str, root: str, *, prefix: Optional[str] = None, sha256: bool = False) -> bool:
    """Create an archive from a directory tree.

    Args:
        archive: Output .tar path.
        root: Directory to store.
        prefix: Leading path to strip from entry names. Defaults to ``root``
            so entries are relative to it.
        sha256: Print the stream checksum after writing.
    """
    if prefix is None:
        prefix = root
    t0 = time.time()
    if sha256:
        checksum = create_sha256(archive, root, prefix)
    else:
        checksum = None
        create(archive, root, prefix)
    dt = max(0.000001, time.time() - t0)
    print(f"Created {archive} in {dt:.1f}s")
    if checksum is not None:
        print(f"sha256:{checksum.hex()}")
    return True


def cmd_extract(archive: str, *, outdir: str = ".", sha256: bool = False) -> bool:
    """Extract an archive into ``outdir``.

    Existing regular files are never overwritten; a conflict aborts the run
    and leaves whatever was already extracted in place.
    """
    if sha256:
        checksum = extract_sha256(archive, outdir)
        print(f"sha256:{checksum.hex()}")
    else:
        extract(archive, outdir)
    print(f"Extracted {archive} to {outdir}")
    return True


def cmd_list(archive: str) -> bool:
    for e in list_entries(archive):
        k = KIND_NAMES.get(e.kind, "?")
        xa = f"\txattrs={len(e.xattrs)}" if e.xattrs else ""
        if e.kind == KIND_FILE:
            print(f"{k}\t{e.mode:04o}\t{e.size}\t{e.name}{xa}")
        elif e.kind == KIND_SYMLINK:
            print(f"{k}\t{e.mode:04o}\t-> {e.linkname}\t{e.name}{xa}")
        else:
            print(f"{k}\t{e.mode:04o}\t{e.name}{xa}")
    return True


def cmd_is_empty(archive: str) -> bool:
    empty = is_empty(archive)
    print("empty" if empty else "not empty")
    return empty


def cmd_xattrs(path: str) -> bool:
    """Print every extended attribute of ``path`` as name=value."""
    try:
        xattrs = get_all_xattrs(path)
    except XattrChangedError as exc:
        print(f"Error: {exc}; retry once the file is no longer being modified", file=sys.stderr)
        return False
    for name, value in sorted((xattrs or {}).items()):
        print(f"{name}={value.decode('utf-8', 'backslashreplace')}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="tarski",
        description="tar archives with extended attributes and stream checksums",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_create = sub.add_parser("create", help="Create archive")
    ap_create.add_argument("archive", help="Output .tar path")
    ap_create.add_argument("root", help="Directory to archive")
    ap_create.add_argument("--prefix", help="Path prefix stripped from entry names (default: root)")
    ap_create.add_argument("--sha256", action="store_true", help="Print the SHA-256 of the tar stream")

    ap_extract = sub.add_parser("extract", help="Extract archive")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--sha256", action="store_true", help="Print the SHA-256 of the tar stream")

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_empty = sub.add_parser("is-empty", help="Exit 0 if the archive has no entries, 1 otherwise")
    ap_empty.add_argument("archive", help="Archive path")

    ap_xattrs = sub.add_parser("xattrs", help="Show extended attributes of a path")
    ap_xattrs.add_argument("path", help="File, directory or symlink")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "create":
            cmd_create(args.archive, args.root, prefix=args.prefix, sha256=args.sha256)
        elif args.cmd == "extract":
            os.makedirs(args.outdir, exist_ok=True)
            cmd_extract(args.archive, outdir=args.outdir, sha256=args.sha256)
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "is-empty":
            sys.exit(0 if cmd_is_empty(args.archive) else 1)
        elif args.cmd == "xattrs":
            sys.exit(0 if cmd_xattrs(args.path) else 2)
        else:
            raise RuntimeError("Unknown command")
    except FileExistsError as e:
        print(f"Error: refusing to overwrite existing file: {e.filename}", file=sys.stderr)
        sys.exit(2)
    except tarfile.TarError as e:
        print(f"Error: not a readable tar archive: {e}", file=sys.stderr)
        sys.exit(2)
    except (TarskiError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

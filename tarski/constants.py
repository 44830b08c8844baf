import stat


# Entry kinds (one per tar type we emit or restore)
KIND_FILE = 0
KIND_DIR = 1
KIND_SYMLINK = 2
KIND_CHAR = 3
KIND_BLOCK = 4
KIND_FIFO = 5

ALL_KINDS = (KIND_FILE, KIND_DIR, KIND_SYMLINK, KIND_CHAR, KIND_BLOCK, KIND_FIFO)

KIND_NAMES = {
    KIND_FILE: "file",
    KIND_DIR: "dir",
    KIND_SYMLINK: "symlink",
    KIND_CHAR: "char",
    KIND_BLOCK: "block",
    KIND_FIFO: "fifo",
}

# stat type -> kind; anything missing here is not representable in a tar header
STAT_KINDS = {
    stat.S_IFREG: KIND_FILE,
    stat.S_IFDIR: KIND_DIR,
    stat.S_IFLNK: KIND_SYMLINK,
    stat.S_IFCHR: KIND_CHAR,
    stat.S_IFBLK: KIND_BLOCK,
    stat.S_IFIFO: KIND_FIFO,
}


# PAX record prefix for extended attributes (GNU tar, star and Go archive/tar agree)
PAX_XATTR_PREFIX = "SCHILY.xattr."

# Header text codec; surrogateescape lets non-UTF-8 names and xattr values round-trip
TAR_ENCODING = "utf-8"
TAR_ERRORS = "surrogateescape"

# Payload copy buffer on extraction
COPY_BUFSIZE = 1_048_576  # 1 MiB

DEFAULT_DIGEST = "sha256"

# macOS *xattr() options flag
XATTR_NOFOLLOW = 0x0001

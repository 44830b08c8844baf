class TarskiError(Exception):
    """Base class for tarski-specific errors."""


# Archive creation
class TraversalError(TarskiError):
    """A path under the archived tree could not be stat'ed, listed or read."""

    def __init__(self, path: str, reason: object = None):
        self.path = path
        msg = f"cannot archive {path}"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(msg)


class UnsupportedEntryError(TarskiError):
    def __init__(self, path: str, mode: int):
        self.path = path
        self.mode = mode
        super().__init__(f"{path}: file type {mode:#o} cannot be stored in a tar header")


# Extended attributes
class XattrChangedError(TarskiError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path}: extended attributes changed during retrieval")


class XattrValueError(TarskiError):
    def __init__(self, path: str, name: str):
        self.path = path
        self.name = name
        super().__init__(f"{path}: no valid value for extended attribute {name!r}")


# Extraction
class PayloadSizeMismatch(TarskiError):
    def __init__(self, path: str, expected: int, written: int):
        self.path = path
        self.expected = expected
        self.written = written
        super().__init__(f"{path}: expected to write {expected} bytes, wrote {written}")


class UnsafePathError(TarskiError):
    pass

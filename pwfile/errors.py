"""
pwfile - Error Types

Every failure the store can report belongs to exactly one ErrorKind.
Callers can either catch the specific exception class or inspect
``err.kind`` on the common PwError base.
"""

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    INVALID_ARGUMENT = "invalid argument"
    FILE_NOT_FOUND = "password file not found"
    ALREADY_EXISTS = "already exists"
    NOT_FOUND = "password not found"
    INVALID_FORMAT = "invalid format"
    DELEGATE_FAILURE = "encryption failure"
    IO_FAILURE = "I/O failure"


class PwError(Exception):
    """Base class for all password store errors."""

    kind: ErrorKind = ErrorKind.IO_FAILURE


class InvalidArgument(PwError, ValueError):
    """Caller misuse: empty path, non-positive length, empty charset."""

    kind = ErrorKind.INVALID_ARGUMENT


class StoreFileNotFound(PwError):
    """The password file does not exist."""

    kind = ErrorKind.FILE_NOT_FOUND

    def __init__(self, path: str):
        super().__init__(f"password file not found: {path}")
        self.path = path


class AlreadyExists(PwError):
    """Init on an existing path, or Add with a name already in use."""

    kind = ErrorKind.ALREADY_EXISTS


class NotFound(PwError, KeyError):
    """No record with the requested name."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"password not found: {name}")
        self.name = name

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class InvalidFormat(PwError):
    """Decrypted content is not a well-formed record list."""

    kind = ErrorKind.INVALID_FORMAT


class DelegateError(PwError):
    """
    The encryption delegate failed.

    Args:
        message: What the store was trying to do
        diagnostic: Output of the delegate itself (e.g. stderr of the
            scrypt utility), kept so the operator can tell a wrong
            passphrase from a filesystem problem
    """

    kind = ErrorKind.DELEGATE_FAILURE

    def __init__(self, message: str, diagnostic: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic.strip() if diagnostic else None

    def __str__(self) -> str:
        if self.diagnostic:
            return f"{self.message}\n{self.diagnostic}"
        return self.message


class IOFailure(PwError):
    """Filesystem failure: permission denied, path is a directory, disk errors."""

    kind = ErrorKind.IO_FAILURE


class ClipboardError(IOFailure):
    """The clipboard could not be written."""

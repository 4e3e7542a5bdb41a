"""
The `utils` module contains custom exceptions and useful functions that are referenced
frequently throughout the rest of the library.

Public Classes
--------------
ErrorKind
    The kinds of errors that can be reported while reading, sorting or writing files.

ConversionError
    Exception raised by the DICOM and NIfTI tools. It carries the kind of error and the
    offending filename so that a consistent message can be reported to the user.

OutputDirectoryError
    Exception to be raised when a directory required for the output cannot be created.

PatternMatchError
    Exception to be raised when a wildcard pattern given as an input does not match
    any files.

Public Functions
----------------
safe_string
    Replace all characters except A-Z, a-z, and 0-9 with underscores so that a string
    can be used as part of a path.

error_kind_from_os_error
    Classify an OSError raised while accessing a file.
"""

import errno

from enum import Enum
from dicomtonifti.constants import ERROR_MESSAGES, UNKNOWN


class ErrorKind(Enum):
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    CANNOT_OPEN_FILE = "CANNOT_OPEN_FILE"
    UNRECOGNIZED_FILE_TYPE = "UNRECOGNIZED_FILE_TYPE"
    PREMATURE_END_OF_FILE = "PREMATURE_END_OF_FILE"
    FILE_FORMAT = "FILE_FORMAT"
    NO_FILE_NAME = "NO_FILE_NAME"
    OUT_OF_DISK_SPACE = "OUT_OF_DISK_SPACE"
    UNKNOWN = "UNKNOWN"


class ConversionError(Exception):
    """
    Exception raised by the DICOM and NIfTI tools when a file cannot be read, sorted,
    or written.
    """

    def __init__(
        self,
        kind: ErrorKind,
        filename: str | None = None,
        detail: str | None = None,
    ):
        """
        Parameters
        ----------
        kind: ErrorKind
            The kind of error that was encountered.

        filename: str | None
            The file that caused the error. Defaults to None.

        detail: str | None
            A description of the underlying cause, reported when running verbosely.
            Defaults to None.

        Returns
        -------
        None:
            If raised, a message indicating the kind of error and the offending file
            will be printed.
        """
        self.kind = kind
        self.filename = "" if filename is None else str(filename)
        self.detail = detail

        super().__init__(ERROR_MESSAGES[kind.value].format(filename=self.filename))


class OutputDirectoryError(Exception):
    """
    Exception to be raised when a directory required for the output cannot be created.
    """

    def __init__(self, directory: str):
        self.directory = directory
        super().__init__(f"Cannot create directory: {directory}")


class PatternMatchError(Exception):
    """
    Exception to be raised when a wildcard pattern given as an input does not match any
    files.
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"Could not match pattern: {pattern}")


def error_kind_from_os_error(error: OSError, writing: bool = False) -> ErrorKind:
    """
    Classify an OSError raised while accessing a file.

    Parameters
    ----------
    error: OSError
        The exception that was encountered.

    writing: bool
        Whether the file was being written. A missing file is only reported as
        'FILE_NOT_FOUND' when reading. Defaults to False.

    Returns
    -------
    ErrorKind
        The corresponding kind of error.
    """
    if error.errno == errno.ENOSPC:
        return ErrorKind.OUT_OF_DISK_SPACE

    if isinstance(error, FileNotFoundError) and not writing:
        return ErrorKind.FILE_NOT_FOUND

    return ErrorKind.CANNOT_OPEN_FILE


def safe_string(s: str) -> str:
    """
    Replace all characters except A-Z, a-z, and 0-9 with underscores so that a string
    can be used as part of a path. Underscores produced by trailing characters are
    removed.

    Parameters
    ----------
    s: str
        The string to sanitize.

    Returns
    -------
    str
        The sanitized string, or 'UNKNOWN' if no alphanumeric characters remain.
    """
    out = []
    end = 0

    for i, c in enumerate(s):
        if c.isascii() and c.isalnum():
            end = i + 1
            out.append(c)

        else:
            out.append("_")

    out = "".join(out[:end])

    if out == "":
        return UNKNOWN

    return out


__all__ = [
    "ErrorKind",
    "ConversionError",
    "OutputDirectoryError",
    "PatternMatchError",
    "error_kind_from_os_error",
    "safe_string",
]

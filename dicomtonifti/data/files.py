"""
The `files` module contains tools for finding the DICOM files to convert.

Public Functions
----------------
expand_patterns
    Expand wildcard patterns within a list of input paths.

is_directory
    Check whether a path should be treated as a directory.

files_and_dirs
    Find the files within a list of files and directories, recursing into directories
    as allowed by the conversion options.
"""
import glob
import os
import warnings

from typing import Iterator, List, Sequence, Set
from dicomtonifti.options import ConversionOptions
from dicomtonifti.utils import PatternMatchError

WILDCARDS = ("*", "?", "[")


def expand_patterns(paths: Sequence[str]) -> List[str]:
    """
    Expand wildcard patterns within a list of input paths. Paths that exist or do not
    contain any wildcards are kept as they are.

    Parameters
    ----------
    paths: Sequence[str]
        The input paths.

    Returns
    -------
    List[str]
        The paths with each pattern replaced by its (sorted) matches.

    Raises
    ------
    PatternMatchError
        If a pattern does not match any files.
    """
    expanded = []

    for path in paths:
        path = str(path)

        if os.path.lexists(path) or not any(c in path for c in WILDCARDS):
            expanded.append(path)
            continue

        matches = sorted(glob.glob(path))

        if len(matches) == 0:
            raise PatternMatchError(path)

        expanded.extend(matches)

    return expanded


def is_directory(path: str) -> bool:
    """
    Check whether a path should be treated as a directory, either because it ends with
    a path separator or because it is a directory on disk.
    """
    return (len(path) > 1 and path.endswith(("/", os.sep))) or os.path.isdir(path)


def files_and_dirs(
    paths: Sequence[str],
    options: ConversionOptions,
    visited: Set[str] | None = None,
) -> Iterator[List[str]]:
    """
    Find the files within a list of files and directories. The files given at each level
    are yielded together as one list before any of the directories at that level are
    expanded.

    The directories given at the top level are always expanded. Subdirectories are only
    expanded if `options.recurse` is True, and symbolic links to directories are only
    followed if `options.follow_symlinks` is also True. Hidden entries (names starting
    with '.') are skipped, and each directory is expanded at most once (after resolving
    symbolic links) so that cycles terminate.

    Parameters
    ----------
    paths: Sequence[str]
        The files and directories to search.

    options: ConversionOptions
        The options that control recursion and symbolic links.

    visited: Set[str] | None
        The real paths of the directories that have already been expanded. This set is
        updated in place and shared with all recursive calls. Defaults to None, which
        indicates a top level call.

    Yields
    ------
    List[str]
        The files found at one level of the search.

    Warnings
    --------
    UserWarning
        A warning is raised for each directory that cannot be read. The directory is
        skipped.
    """
    top_level = visited is None

    if visited is None:
        visited = set()

    directories = []
    files = []

    for path in paths:
        if is_directory(path):
            if top_level or (
                options.recurse
                and (options.follow_symlinks or not os.path.islink(path))
            ):
                directories.append(path)

        else:
            files.append(path)

    if len(files) > 0:
        yield files

    for directory in directories:
        # avoid infinite recursion
        realpath = os.path.realpath(directory)

        if realpath in visited:
            continue

        visited.add(realpath)

        try:
            entries = sorted(os.listdir(directory))

        except OSError:
            warnings.warn(f"Could not open directory {directory}", UserWarning)
            continue

        children = [
            os.path.join(directory, entry)
            for entry in entries
            if not entry.startswith(".")
        ]

        yield from files_and_dirs(children, options, visited)


__all__ = ["expand_patterns", "is_directory", "files_and_dirs"]

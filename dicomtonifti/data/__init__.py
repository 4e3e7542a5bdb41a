"""
The `data` package contains the pipeline for converting DICOM files to NIfTI format.

Public Functions
----------------
files_and_dirs
    Find the files within a list of files and directories, recursing into directories
    as allowed by the conversion options.

expand_patterns
    Expand wildcard patterns within a list of input paths.

make_filename
    Generate an output filename for a series from its metadata.

check_slice_order
    Determine whether the slices of a series were reordered with respect to the
    acquisition order.

convert_series
    Convert a DICOM series to a NIfTI file.

convert_files
    Convert a list of DICOM files to NIfTI files representing each series.

convert_paths
    Convert the DICOM files found at a list of files, directories, and patterns.
"""

from .files import files_and_dirs, expand_patterns
from .nifti_conversion import (
    MultipleSeriesError,
    make_filename,
    check_slice_order,
    convert_series,
    convert_files,
    convert_paths,
)


__all__ = [
    "files_and_dirs",
    "expand_patterns",
    "MultipleSeriesError",
    "make_filename",
    "check_slice_order",
    "convert_series",
    "convert_files",
    "convert_paths",
]

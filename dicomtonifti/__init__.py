"""
`dicomtonifti` is a python library and command line tool for converting DICOM series
into NIfTI files. Slices from one or more series are discovered on disk, grouped by
study and series, and written out as volumes whose qform and sform describe the
original patient position and orientation in the NIfTI (RAS) coordinate system.

Public Packages
---------------
data
    The `data` package contains the conversion pipeline: file discovery, output
    naming, slice order validation and the per-series conversion.

Public Modules
--------------
constants
    The `constants` module contains important constants that are referenced frequently
    throughout the rest of the library.

dcm_tools
    The `dcm_tools` module contains code for reading and sorting DICOM files.

nifti_tools
    The `nifti_tools` module contains the DICOM to RAS coordinate conversion and the
    NIfTI writer.

options
    The `options` module contains the immutable configuration used for a conversion run.

utils
    The `utils` module contains custom exceptions and useful functions that are referenced
    frequently throughout the rest of the library.
"""

__version__ = "0.1.0"

__all__ = [
    "data",
    "constants",
    "dcm_tools",
    "nifti_tools",
    "options",
    "utils",
]

"""
The `constants` module contains important constants that are referenced frequently
throughout the rest of the library.

Public Constants
----------------
META_KEYS
    The DICOM attributes read from a representative file of each series to generate
    output filenames in batch mode.

NIFTI_EXTENSION
    The file extension of uncompressed NIfTI output.

COMPRESSED_SUFFIX
    The suffix appended to output filenames when compression is requested.

UNKNOWN
    The token used in place of a metadata value with no usable characters.

ERROR_MESSAGES
    A mapping from an error kind name to the message reported for it. Messages with a
    '{filename}' field are formatted with the offending file.
"""

META_KEYS = [
    "PatientName",
    "PatientID",
    "StudyDescription",
    "StudyID",
    "SeriesDescription",
    "SeriesNumber",
]

NIFTI_EXTENSION = ".nii"

COMPRESSED_SUFFIX = ".gz"

UNKNOWN = "UNKNOWN"

ERROR_MESSAGES = {
    "FILE_NOT_FOUND": "File not found: {filename}",
    "CANNOT_OPEN_FILE": "Cannot open file: {filename}",
    "UNRECOGNIZED_FILE_TYPE": "Unrecognized file type: {filename}",
    "PREMATURE_END_OF_FILE": "File is truncated: {filename}",
    "FILE_FORMAT": "Bad DICOM file: {filename}",
    "NO_FILE_NAME": "Output filename could not be used: {filename}",
    "OUT_OF_DISK_SPACE": "Out of disk space while writing file: {filename}",
    "UNKNOWN": "An unknown error occurred.",
}

__all__ = [
    "META_KEYS",
    "NIFTI_EXTENSION",
    "COMPRESSED_SUFFIX",
    "UNKNOWN",
    "ERROR_MESSAGES",
]

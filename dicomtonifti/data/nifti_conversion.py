"""
The `nifti_conversion` module contains tools for converting from DICOM to NIfTI format.

Public Functions
----------------
make_filename
    Generate an output filename for a series from its metadata.

add_compressed_suffix
    Append '.gz' to an output filename if it does not already end with it.

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
import os
import numpy as np

from pathlib import Path
from typing import Dict, Sequence
from dicomtonifti.constants import COMPRESSED_SUFFIX, NIFTI_EXTENSION, UNKNOWN
from dicomtonifti.dcm_tools import read_metadata, read_series, sort_files
from dicomtonifti.nifti_tools import LPS_TO_RAS, dicom_to_ras, write_nifti
from dicomtonifti.options import ConversionOptions
from dicomtonifti.utils import OutputDirectoryError, safe_string
from dicomtonifti.data.files import expand_patterns, files_and_dirs


class MultipleSeriesError(Exception):
    """
    Exception to be raised when more than one series is found outside of batch mode.
    """

    def __init__(self, n_series: int):
        self.n_series = n_series
        super().__init__(
            f"Found {n_series} series; use --batch to convert more than one series."
        )


def make_filename(output_dir: Path | str, meta: Dict[str, str]) -> str:
    """
    Generate an output filename for a series from its metadata. The filename follows the
    scheme 'PatientName/StudyDescription-StudyID/SeriesDescription_SeriesNumber.nii',
    with 'PatientID' used in place of 'PatientName' when no name is available.

    Parameters
    ----------
    output_dir: Path | str
        The directory under which the file will be written.

    meta: Dict[str, str]
        The metadata of the series, as returned by `read_metadata`.

    Returns
    -------
    str
        The output filename. No directories are created.
    """
    patient_name = safe_string(meta.get("PatientName", ""))
    patient_id = safe_string(meta.get("PatientID", ""))
    study_desc = safe_string(meta.get("StudyDescription", ""))
    study_id = safe_string(meta.get("StudyID", ""))
    series_desc = safe_string(meta.get("SeriesDescription", ""))
    series_number = safe_string(meta.get("SeriesNumber", ""))

    if patient_name != UNKNOWN:
        patient_id = patient_name

    return os.path.join(
        output_dir,
        patient_id,
        f"{study_desc}-{study_id}",
        f"{series_desc}_{series_number}{NIFTI_EXTENSION}",
    )


def add_compressed_suffix(filename: str) -> str:
    """
    Append '.gz' to an output filename if it does not already end with it (ignoring
    case).
    """
    if len(filename) > 2 and filename[-3:].lower() != COMPRESSED_SUFFIX:
        return filename + COMPRESSED_SUFFIX

    return filename


def check_slice_order(
    file_indices: Sequence[int],
    patient_matrix: np.ndarray,
    ras_matrix: np.ndarray,
) -> bool:
    """
    Determine whether the slices of a series were reordered with respect to the
    acquisition order. Reordering can happen when the series is read (if the files
    were not in spatial order) and when it is converted to RAS coordinates (to keep a
    right-handed coordinate system). If both happened, they cancel out.

    Parameters
    ----------
    file_indices: Sequence[int]
        For each slice, the index of the file it was read from.

    patient_matrix: np.ndarray
        The 4x4 patient matrix of the series in DICOM coordinates.

    ras_matrix: np.ndarray
        The 4x4 matrix of the converted series in NIfTI coordinates.

    Returns
    -------
    bool
        Whether the final slice order is the reverse of the acquisition order.
    """
    reordered = len(file_indices) > 1 and file_indices[0] > file_indices[-1]

    # undo the DICOM to NIfTI x = -x, y = -y conversion
    check_matrix = np.linalg.inv(LPS_TO_RAS @ patient_matrix) @ ras_matrix

    # a negative slice direction means the converter reversed the slices
    if check_matrix[2, 2] < -0.1:
        reordered = not reordered

    return bool(reordered)


def convert_series(
    files: Sequence[str],
    output_nifti: str,
    options: ConversionOptions,
) -> str:
    """
    Convert a DICOM series to a NIfTI file.

    Parameters
    ----------
    files: Sequence[str]
        The files belonging to a single DICOM series.

    output_nifti: str
        The path of the NIfTI file to write.

    options: ConversionOptions
        The options for the conversion.

    Returns
    -------
    str
        The output filename.

    Raises
    ------
    ConversionError
        If the series cannot be read or the NIfTI file cannot be written.
    """
    volume = read_series(files, verbose=options.verbose)

    ras_matrix, array = dicom_to_ras(
        volume,
        allow_row_reordering=not options.no_row_reordering,
        allow_column_reordering=not options.no_column_reordering,
    )

    slices_reordered = check_slice_order(
        volume.file_indices, volume.patient_matrix, ras_matrix
    )

    # store the slices in their original DICOM order
    qfac = -1.0 if options.no_slice_reordering and slices_reordered else 1.0

    return write_nifti(
        array,
        volume.spacing,
        output_nifti,
        qform=None if options.no_qform else ras_matrix,
        sform=None if options.no_sform else ras_matrix,
        qfac=qfac,
        verbose=options.verbose,
    )


def convert_files(files: Sequence[str], options: ConversionOptions) -> list[str]:
    """
    Convert a list of DICOM files to NIfTI files representing each series. Outside of
    batch mode, the files must contain a single series, which is written to
    `options.output`. In batch mode, each series is written under `options.output` with
    a filename generated from its metadata.

    Parameters
    ----------
    files: Sequence[str]
        The DICOM files to convert.

    options: ConversionOptions
        The options for the conversion.

    Returns
    -------
    list[str]
        The NIfTI files that were written.

    Raises
    ------
    ConversionError
        If any file cannot be read or any NIfTI file cannot be written.

    OutputDirectoryError
        If an output directory cannot be created.

    MultipleSeriesError
        If more than one series is found outside of batch mode.
    """
    sorted_files = sort_files(files, verbose=options.verbose)

    if not options.batch:
        series = sorted_files.series

        if len(series) != 1:
            raise MultipleSeriesError(len(series))

        output_nifti = options.output

        if options.compress:
            output_nifti = add_compressed_suffix(output_nifti)

        return [convert_series(series[0].files, output_nifti, options)]

    outputs = []

    for study in sorted_files.studies:
        for k, group in enumerate(study):
            meta = read_metadata(group.files[0], verbose=options.verbose)

            output_nifti = make_filename(options.output, meta)

            if options.compress:
                output_nifti += COMPRESSED_SUFFIX

            # series in the same study share a directory
            if k == 0:
                output_dir = os.path.dirname(output_nifti)

                try:
                    os.makedirs(output_dir, exist_ok=True)

                except OSError as error:
                    raise OutputDirectoryError(output_dir) from error

            if not options.silent:
                print(output_nifti)

            outputs.append(convert_series(group.files, output_nifti, options))

    return outputs


def convert_paths(paths: Sequence[str], options: ConversionOptions) -> list[str]:
    """
    Convert the DICOM files found at a list of files, directories, and patterns. The
    files found at each directory level are converted together before descending into
    subdirectories.

    Parameters
    ----------
    paths: Sequence[str]
        The input files, directories, and wildcard patterns.

    options: ConversionOptions
        The options for the conversion.

    Returns
    -------
    list[str]
        The NIfTI files that were written.
    """
    outputs = []

    for files in files_and_dirs(expand_patterns(paths), options):
        outputs.extend(convert_files(files, options))

    return outputs


__all__ = [
    "MultipleSeriesError",
    "make_filename",
    "add_compressed_suffix",
    "check_slice_order",
    "convert_series",
    "convert_files",
    "convert_paths",
]

"""
The `dcm_tools` module contains code for reading and sorting DICOM files.

Public Classes
--------------
SeriesGroup
    The files belonging to one DICOM series.

SortedFiles
    The result of sorting DICOM files into studies and series.

SeriesVolume
    The pixel data and geometry of a DICOM series.

Public Functions
----------------
read_metadata
    Read the metadata used for output filenames from a single DICOM file.

sort_files
    Sort DICOM files into studies and series.

read_series
    Read the files of a single DICOM series into a volume.

calc_slice_distance
    Calculate the signed distance of a slice in 3D space from the origin of the frame
    of reference.

get_slice_spacing
    Compute the distance between adjacent slices.

patient_matrix_from_iop
    Build the 4x4 patient matrix of a series from its orientation and position.
"""
import warnings
import numpy as np
import pydicom

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple, Union
from pydicom.errors import InvalidDicomError
from dicomtonifti.constants import META_KEYS
from dicomtonifti.utils import ConversionError, ErrorKind, error_kind_from_os_error


@dataclass
class SeriesGroup:
    """
    The files belonging to one DICOM series.

    Attributes
    ----------
    files: List[str]
        The files of the series in instance order.

    series_index: int
        The position of the series among all of the sorted series.

    study_index: int
        The position of the study that contains the series.
    """

    files: List[str]
    series_index: int
    study_index: int


@dataclass
class SortedFiles:
    """
    The result of sorting DICOM files into studies and series.

    Attributes
    ----------
    studies: List[List[SeriesGroup]]
        The series of each study, in sorted order.
    """

    studies: List[List[SeriesGroup]] = field(default_factory=list)

    @property
    def series(self) -> List[SeriesGroup]:
        return [group for study in self.studies for group in study]


@dataclass
class SeriesVolume:
    """
    The pixel data and geometry of a DICOM series.

    Attributes
    ----------
    array: np.ndarray
        The pixel data with shape (slices, rows, columns) or (slices, rows, columns,
        samples). Rows are stored in the same order as in the files.

    spacing: np.ndarray
        The spacing between columns, rows, and slices in mm.

    patient_matrix: np.ndarray
        A 4x4 matrix whose first three columns are the column, row, and slice
        directions in DICOM patient (LPS) coordinates and whose last column is the
        position of the first slice.

    file_indices: np.ndarray
        For each slice, the index of the file it was read from.
    """

    array: np.ndarray
    spacing: np.ndarray
    patient_matrix: np.ndarray
    file_indices: np.ndarray


def _dcmread(
    path: str, stop_before_pixels: bool = True, verbose: bool = False
) -> pydicom.Dataset:
    """
    Read a DICOM file, reporting any failure as a `ConversionError`. Warnings emitted
    by `pydicom` are only shown when `verbose` is True.
    """
    try:
        with warnings.catch_warnings():
            if not verbose:
                warnings.simplefilter("ignore")

            return pydicom.dcmread(path, stop_before_pixels=stop_before_pixels)

    except InvalidDicomError as error:
        raise ConversionError(
            ErrorKind.UNRECOGNIZED_FILE_TYPE, path, str(error)
        ) from error

    except EOFError as error:
        raise ConversionError(
            ErrorKind.PREMATURE_END_OF_FILE, path, str(error)
        ) from error

    except OSError as error:
        raise ConversionError(error_kind_from_os_error(error), path, str(error)) from error

    except Exception as error:
        raise ConversionError(ErrorKind.FILE_FORMAT, path, str(error)) from error


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value)

    except (TypeError, ValueError):
        return None


def read_metadata(path: str, verbose: bool = False) -> Dict[str, str]:
    """
    Read the metadata used for output filenames from a single DICOM file.

    Parameters
    ----------
    path: str
        The DICOM file to read.

    verbose: bool
        Whether to show warnings emitted while reading. Defaults to False.

    Returns
    -------
    Dict[str, str]
        A dictionary mapping each key in `META_KEYS` to its value. Missing values are
        represented by ''.
    """
    ds = _dcmread(path, stop_before_pixels=True, verbose=verbose)

    meta = {}

    for key in META_KEYS:
        value = getattr(ds, key, None)
        meta[key] = "" if value is None else str(value)

    return meta


def sort_files(paths: Sequence[str], verbose: bool = False) -> SortedFiles:
    """
    Sort DICOM files into studies and series. Studies are ordered by 'StudyDate',
    'StudyTime', and 'StudyInstanceUID', series by 'SeriesNumber' and
    'SeriesInstanceUID', and files by 'InstanceNumber'. Files that are not DICOM
    images are ignored.

    Parameters
    ----------
    paths: Sequence[str]
        The files to sort.

    verbose: bool
        Whether to warn about ignored files and show warnings emitted while reading.
        Defaults to False.

    Returns
    -------
    SortedFiles
        The files grouped by study and series.

    Raises
    ------
    ConversionError
        If a file cannot be read or if none of the files are DICOM images.
    """
    studies = {}
    ignored = []

    for i, path in enumerate(paths):
        try:
            ds = _dcmread(path, stop_before_pixels=True, verbose=verbose)

        except ConversionError as error:
            if error.kind is not ErrorKind.UNRECOGNIZED_FILE_TYPE:
                raise

            ignored.append(path)
            continue

        # images are the only instances that can be converted
        if "Rows" not in ds:
            ignored.append(path)
            continue

        study_uid = str(getattr(ds, "StudyInstanceUID", ""))
        series_uid = str(getattr(ds, "SeriesInstanceUID", ""))

        if study_uid not in studies:
            studies[study_uid] = {
                "key": (
                    str(getattr(ds, "StudyDate", "")),
                    str(getattr(ds, "StudyTime", "")),
                    study_uid,
                ),
                "series": {},
            }

        series = studies[study_uid]["series"]

        if series_uid not in series:
            number = _int_or_none(getattr(ds, "SeriesNumber", None))
            series[series_uid] = {
                "key": (number is None, number or 0, series_uid),
                "files": [],
            }

        instance = _int_or_none(getattr(ds, "InstanceNumber", None))
        series[series_uid]["files"].append(((instance is None, instance or 0, i), path))

    if verbose:
        for path in ignored:
            warnings.warn(f"{path} is not a DICOM image and will be ignored", UserWarning)

    if len(studies) == 0:
        raise ConversionError(
            ErrorKind.UNRECOGNIZED_FILE_TYPE, ignored[0] if ignored else None
        )

    sorted_files = SortedFiles()
    series_index = 0

    for study_index, study in enumerate(
        sorted(studies.values(), key=lambda s: s["key"])
    ):
        groups = []

        for series in sorted(study["series"].values(), key=lambda s: s["key"]):
            files = [path for _, path in sorted(series["files"], key=lambda f: f[0])]
            groups.append(SeriesGroup(files, series_index, study_index))
            series_index += 1

        sorted_files.studies.append(groups)

    return sorted_files


def calc_slice_distance(
    image_orientation_patient: Sequence[Union[float, str]],
    image_position_patient: Sequence[Union[float, str]],
) -> float:
    """
    Compute the position of a slice along its normal, i.e. its signed distance from
    the origin of the patient coordinate system.

    Parameters
    ----------
    image_orientation_patient: Sequence[Union[float, str]]
        The six direction cosines of the 'ImageOrientationPatient' attribute.

    image_position_patient: Sequence[Union[float, str]]
        The three coordinates of the 'ImagePositionPatient' attribute.

    Returns
    -------
    float
        The distance in mm along the slice normal.

    Raises
    ------
    ValueError
        If either attribute has the wrong number of values.
    """
    orientation = np.array(image_orientation_patient, dtype=float)
    position = np.array(image_position_patient, dtype=float)

    if len(orientation) != 6 or len(position) != 3:
        raise ValueError(
            "ImageOrientationPatient needs 6 values and ImagePositionPatient needs 3"
        )

    normal = np.cross(orientation[0:3], orientation[3:6])
    return float(np.dot(normal, position))


def get_slice_spacing(distances: Sequence[float], default: float = 1.0) -> float:
    """
    Compute the spacing between adjacent slices as the most common difference between
    consecutive slice distances (rounded to 1e-4 mm).

    Parameters
    ----------
    distances: Sequence[float]
        The sorted slice distances, as returned by `calc_slice_distance`.

    default: float
        The spacing to return for fewer than two slices or a non-positive difference.
        Defaults to 1.0.

    Returns
    -------
    float
        The slice spacing in mm.
    """
    if len(distances) < 2:
        return default

    differences = np.round(np.diff(distances), 4)
    values, counts = np.unique(differences, return_counts=True)
    dist = float(values[counts == counts.max()][0])

    if dist <= 0:
        return default

    return dist


def patient_matrix_from_iop(
    iop: Sequence[float], position: Sequence[float]
) -> np.ndarray:
    """
    Build the 4x4 patient matrix of a series. Its columns are the row direction, the
    column direction, their cross product (the slice normal), and the position of the
    first slice. The matrix contains no scaling.

    Parameters
    ----------
    iop: Sequence[float]
        The six values of 'ImageOrientationPatient'.

    position: Sequence[float]
        The three values of 'ImagePositionPatient' for the first slice.

    Returns
    -------
    np.ndarray
        The patient matrix in LPS coordinates.

    Raises
    ------
    ValueError
        If `iop` or `position` has the wrong number of values.
    """
    if len(iop) != 6 or len(position) != 3:
        raise ValueError("Expected 6 orientation values and 3 position values")

    row_dir = np.array(iop[:3], dtype=float)
    col_dir = np.array(iop[3:], dtype=float)

    matrix = np.eye(4)
    matrix[:3, 0] = row_dir
    matrix[:3, 1] = col_dir
    matrix[:3, 2] = np.cross(row_dir, col_dir)
    matrix[:3, 3] = np.array(position, dtype=float)

    return matrix


def _first_item(ds: pydicom.Dataset, *keywords: str) -> pydicom.Dataset | None:
    """Follow a chain of sequence keywords, taking the first item of each."""
    for keyword in keywords:
        seq = getattr(ds, keyword, None)

        if not seq:
            return None

        ds = seq[0]

    return ds


def _frame_geometry(ds: pydicom.Dataset, frame: int) -> Tuple[Any, Any, Any]:
    """
    Get the orientation, position, and pixel spacing of one frame. Enhanced multi-frame
    instances store these in their functional group sequences.
    """
    iop = getattr(ds, "ImageOrientationPatient", None)
    ipp = getattr(ds, "ImagePositionPatient", None)
    pixel_spacing = getattr(ds, "PixelSpacing", None)

    per_frame = getattr(ds, "PerFrameFunctionalGroupsSequence", None)
    groups = [per_frame[frame]] if per_frame and len(per_frame) > frame else []
    shared = _first_item(ds, "SharedFunctionalGroupsSequence")

    if shared is not None:
        groups.append(shared)

    for group in groups:
        orientation = _first_item(group, "PlaneOrientationSequence")
        position = _first_item(group, "PlanePositionSequence")
        measures = _first_item(group, "PixelMeasuresSequence")

        if iop is None and orientation is not None:
            iop = getattr(orientation, "ImageOrientationPatient", None)

        if ipp is None and position is not None:
            ipp = getattr(position, "ImagePositionPatient", None)

        if pixel_spacing is None and measures is not None:
            pixel_spacing = getattr(measures, "PixelSpacing", None)

    return iop, ipp, pixel_spacing


def read_series(files: Sequence[str], verbose: bool = False) -> SeriesVolume:
    """
    Read the files of a single DICOM series into a volume. Slices are stored in order
    of increasing position along the slice normal (the cross product of the row and
    column directions), with 'InstanceNumber' used to break ties. If any slice does not
    define its position, the order of `files` is kept.

    Parameters
    ----------
    files: Sequence[str]
        The files of the series, typically in instance order.

    verbose: bool
        Whether to show warnings emitted while reading. Defaults to False.

    Returns
    -------
    SeriesVolume
        The pixel data and geometry of the series.

    Raises
    ------
    ConversionError
        If a file cannot be read or its image attributes are missing or inconsistent.
    """
    if len(files) == 0:
        raise ConversionError(ErrorKind.NO_FILE_NAME)

    slices = []
    datasets = []

    for i, path in enumerate(files):
        ds = _dcmread(path, stop_before_pixels=False, verbose=verbose)
        datasets.append(ds)

        instance = _int_or_none(getattr(ds, "InstanceNumber", None))
        n_frames = _int_or_none(getattr(ds, "NumberOfFrames", None)) or 1

        for frame in range(n_frames):
            iop, ipp, pixel_spacing = _frame_geometry(ds, frame)
            slices.append(
                {
                    "file_index": i,
                    "frame": frame,
                    "n_frames": n_frames,
                    "iop": iop,
                    "ipp": ipp,
                    "pixel_spacing": pixel_spacing,
                    "instance": instance if instance is not None else i,
                }
            )

    positioned = all(s["iop"] is not None and s["ipp"] is not None for s in slices)

    if positioned:
        try:
            for s in slices:
                s["distance"] = calc_slice_distance(slices[0]["iop"], s["ipp"])

        except ValueError as error:
            raise ConversionError(
                ErrorKind.FILE_FORMAT, files[s["file_index"]], str(error)
            ) from error

        slices = sorted(slices, key=lambda s: (s["distance"], s["instance"]))

    arrays = {}
    frames = []

    for s in slices:
        i = s["file_index"]

        if i not in arrays:
            try:
                with warnings.catch_warnings():
                    if not verbose:
                        warnings.simplefilter("ignore")

                    arr = datasets[i].pixel_array

            except Exception as error:
                raise ConversionError(
                    ErrorKind.FILE_FORMAT, files[i], str(error)
                ) from error

            arrays[i] = arr if s["n_frames"] > 1 else arr[np.newaxis]

        frames.append(arrays[i][s["frame"]])

    for s, frame in zip(slices, frames):
        if frame.shape != frames[0].shape:
            raise ConversionError(
                ErrorKind.FILE_FORMAT,
                files[s["file_index"]],
                f"Slice shape {frame.shape} does not match {frames[0].shape}",
            )

    array = np.stack(frames)

    first = slices[0]
    pixel_spacing = first["pixel_spacing"]

    if pixel_spacing is None:
        pixel_spacing = getattr(datasets[first["file_index"]], "ImagerPixelSpacing", [1, 1])

    default_spacing = getattr(datasets[first["file_index"]], "SliceThickness", None)
    default_spacing = float(default_spacing) if default_spacing else 1.0

    if positioned:
        patient_matrix = patient_matrix_from_iop(first["iop"], first["ipp"])
        slice_spacing = get_slice_spacing(
            [s["distance"] for s in slices], default=default_spacing
        )

    else:
        patient_matrix = np.eye(4)
        slice_spacing = default_spacing

    # NB swap spacing in first two directions due to differing conventions
    spacing = np.array(
        [float(pixel_spacing[1]), float(pixel_spacing[0]), slice_spacing], float
    )

    file_indices = np.array([s["file_index"] for s in slices], int)

    return SeriesVolume(array, spacing, patient_matrix, file_indices)


__all__ = [
    "SeriesGroup",
    "SortedFiles",
    "SeriesVolume",
    "read_metadata",
    "sort_files",
    "read_series",
    "calc_slice_distance",
    "get_slice_spacing",
    "patient_matrix_from_iop",
]

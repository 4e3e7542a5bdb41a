"""
The `nifti_tools` module contains the DICOM to RAS coordinate conversion and the NIfTI
writer.

Public Constants
----------------
LPS_TO_RAS
    The matrix that converts DICOM patient coordinates (LPS) to NIfTI coordinates (RAS).

Public Functions
----------------
dicom_to_ras
    Convert the geometry of a DICOM series to NIfTI coordinates, reordering the columns,
    rows, and slices of the volume to a consistent orientation.

reverse_axis
    Reverse one axis of a volume and update its matrix so that the voxels keep their
    physical positions.

write_nifti
    Write a volume to a NIfTI file.
"""
import warnings
import numpy as np
import nibabel as nib

from typing import Sequence, Tuple
from nibabel.filebasedimages import ImageFileError
from nibabel.openers import Opener
from dicomtonifti.dcm_tools import SeriesVolume
from dicomtonifti.utils import ConversionError, ErrorKind, error_kind_from_os_error

LPS_TO_RAS = np.diag([-1.0, -1.0, 1.0, 1.0])

# NIfTI xform codes
SCANNER_ANAT = 1
ALIGNED_ANAT = 2

# extensions that nibabel recognizes when saving
NIFTI_EXTENSIONS = (".nii", ".hdr", ".img")


def _has_nifti_extension(filename: str) -> bool:
    name = filename.lower()

    if name.endswith(".gz"):
        name = name[:-3]

    return name.endswith(NIFTI_EXTENSIONS)


def reverse_axis(
    matrix: np.ndarray,
    array: np.ndarray,
    column: int,
    axis: int,
    spacing: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Reverse one axis of a volume and update its matrix so that the voxels keep their
    physical positions.

    Parameters
    ----------
    matrix: np.ndarray
        A 4x4 matrix without scaling, whose column `column` is the direction of the
        axis being reversed.

    array: np.ndarray
        The volume.

    column: int
        The column of `matrix` that corresponds to the axis.

    axis: int
        The axis of `array` to reverse.

    spacing: float
        The spacing between voxels along the axis.

    Returns
    -------
    matrix: np.ndarray
        The updated matrix. The input is not modified.

    array: np.ndarray
        A reversed view of the volume.
    """
    matrix = matrix.copy()
    n = array.shape[axis]

    matrix[:3, 3] += matrix[:3, column] * spacing * (n - 1)
    matrix[:3, column] = -matrix[:3, column]

    return matrix, np.flip(array, axis=axis)


def dicom_to_ras(
    volume: SeriesVolume,
    allow_row_reordering: bool = True,
    allow_column_reordering: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert the geometry of a DICOM series to NIfTI coordinates. The columns are
    reordered so that higher column indices are further to the patient's right (or
    anterior for sagittal images) and the rows so that higher row indices are superior
    (or anterior for axial images). The slices are then reordered if necessary so that
    the column, row, and slice directions follow the right-hand rule.

    Parameters
    ----------
    volume: SeriesVolume
        The series as read by `read_series`.

    allow_row_reordering: bool
        Whether the rows may be reordered. Defaults to True.

    allow_column_reordering: bool
        Whether the columns may be reordered. Defaults to True.

    Returns
    -------
    ras_matrix: np.ndarray
        A 4x4 matrix whose first three columns are the column, row, and slice directions
        of the reordered volume in RAS coordinates and whose last column is the position
        of its first voxel.

    array: np.ndarray
        The reordered volume with shape (slices, rows, columns[, samples]).
    """
    matrix = LPS_TO_RAS @ volume.patient_matrix
    array = volume.array

    # (matrix column, array axis)
    axes = {"column": (0, 2), "row": (1, 1), "slice": (2, 0)}

    allowed = {"column": allow_column_reordering, "row": allow_row_reordering}

    for name in ["column", "row"]:
        column, axis = axes[name]
        direction = matrix[:3, column]

        if allowed[name] and direction[np.argmax(np.abs(direction))] < 0:
            matrix, array = reverse_axis(
                matrix, array, column, axis, volume.spacing[column]
            )

    if np.linalg.det(matrix[:3, :3]) < 0:
        column, axis = axes["slice"]
        matrix, array = reverse_axis(matrix, array, column, axis, volume.spacing[column])

    return matrix, array


def write_nifti(
    array: np.ndarray,
    spacing: Sequence[float],
    filename: str,
    qform: np.ndarray | None = None,
    sform: np.ndarray | None = None,
    qfac: float = 1.0,
    verbose: bool = False,
) -> str:
    """
    Write a volume to a NIfTI file. The file is compressed if `filename` ends with
    '.gz'.

    Parameters
    ----------
    array: np.ndarray
        The volume with shape (slices, rows, columns) or (slices, rows, columns, samples).

    spacing: Sequence[float]
        The spacing between columns, rows, and slices in mm.

    filename: str
        The output NIfTI file. Names without a '.nii', '.hdr', or '.img' extension are
        written as single-file NIfTI.

    qform: np.ndarray | None
        A 4x4 matrix without scaling to store as the qform, or None to omit the qform.
        Defaults to None.

    sform: np.ndarray | None
        A 4x4 matrix without scaling to store as the sform, or None to omit the sform.
        Defaults to None.

    qfac: float
        If negative, the slices are stored in reverse order and the qform becomes
        left-handed, so that the file keeps the slice order from before any slice
        reordering. Defaults to 1.0.

    verbose: bool
        Whether to show warnings emitted while writing. Defaults to False.

    Returns
    -------
    str
        The output filename.

    Raises
    ------
    ConversionError
        If the file cannot be written.
    """
    if not filename:
        raise ConversionError(ErrorKind.NO_FILE_NAME, filename)

    spacing = [float(s) for s in spacing]

    # (slices, rows, columns) -> (columns, rows, slices)
    data = np.transpose(array, (2, 1, 0) + tuple(range(3, array.ndim)))

    if data.ndim == 4:
        # samples are stored as a vector in the fifth dimension
        data = data[:, :, :, np.newaxis, :]

    forms = {"qform": qform, "sform": sform}

    if qfac < 0:
        for key, matrix in forms.items():
            if matrix is not None:
                forms[key], _ = reverse_axis(matrix, data, 2, 2, spacing[2])

        data = np.flip(data, axis=2)

    scale = np.diag(spacing + [1.0])

    image = nib.Nifti1Image(np.ascontiguousarray(data), None)
    header = image.header
    header.set_zooms(tuple(spacing) + (1.0,) * (data.ndim - 3))
    header.set_xyzt_units(xyz="mm")

    if data.ndim == 5:
        header.set_intent("vector")

    if forms["qform"] is not None:
        image.set_qform(forms["qform"] @ scale, code=SCANNER_ANAT)

    if forms["sform"] is not None:
        image.set_sform(forms["sform"] @ scale, code=ALIGNED_ANAT)

    if qfac < 0:
        header["pixdim"][0] = -1.0

    try:
        with warnings.catch_warnings():
            if not verbose:
                warnings.simplefilter("ignore")

            if _has_nifti_extension(filename):
                nib.save(image, filename)

            else:
                # nibabel picks the format from the extension, so any other name is
                # written as a single file (compressed if it ends with .gz)
                with Opener(filename, "wb") as fileobj:
                    fileobj.write(image.to_bytes())

    except ImageFileError as error:
        raise ConversionError(ErrorKind.NO_FILE_NAME, filename, str(error)) from error

    except OSError as error:
        raise ConversionError(
            error_kind_from_os_error(error, writing=True), filename, str(error)
        ) from error

    return filename


__all__ = ["LPS_TO_RAS", "dicom_to_ras", "reverse_axis", "write_nifti"]

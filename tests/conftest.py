"""Pytest configuration for dicomtonifti tests."""

import numpy as np
import pytest

from pathlib import Path
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import ExplicitVRLittleEndian, MRImageStorage, generate_uid

ROWS = 4
COLUMNS = 5
AXIAL = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0)


def slice_pixels(k: int) -> np.ndarray:
    """Pixel values of slice ``k`` in a synthetic series."""
    return (np.arange(ROWS * COLUMNS).reshape(ROWS, COLUMNS) + 100 * k).astype(np.uint16)


def write_dicom(
    path: Path,
    pixels: np.ndarray,
    study_uid: str,
    series_uid: str,
    instance: int,
    position,
    orientation=AXIAL,
    pixel_spacing=(1.0, 1.0),
    patient_name: str = "",
    patient_id: str = "",
    study_description: str = "",
    study_id: str = "",
    series_description: str = "",
    series_number: int = 1,
) -> Path:
    """Write a single-frame MR image to ``path``."""
    sop_uid = generate_uid()

    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = MRImageStorage
    meta.MediaStorageSOPInstanceUID = sop_uid
    meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = Dataset()
    ds.file_meta = meta
    ds.SOPClassUID = MRImageStorage
    ds.SOPInstanceUID = sop_uid
    ds.Modality = "MR"
    ds.PatientName = patient_name
    ds.PatientID = patient_id
    ds.StudyInstanceUID = study_uid
    ds.StudyDescription = study_description
    ds.StudyID = study_id
    ds.StudyDate = "20240101"
    ds.SeriesInstanceUID = series_uid
    ds.SeriesDescription = series_description
    ds.SeriesNumber = series_number
    ds.InstanceNumber = instance
    ds.ImageOrientationPatient = list(orientation)
    ds.ImagePositionPatient = [float(p) for p in position]
    ds.PixelSpacing = list(pixel_spacing)
    ds.SliceThickness = 2.0
    ds.Rows, ds.Columns = pixels.shape
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelRepresentation = 0
    ds.PixelData = pixels.astype(np.uint16).tobytes()

    ds.save_as(path, enforce_file_format=True)

    return path


def make_series(
    directory: Path,
    n_slices: int = 3,
    orientation=AXIAL,
    slice_spacing: float = 2.0,
    reverse_instances: bool = False,
    study_uid: str | None = None,
    series_uid: str | None = None,
    prefix: str = "slice",
    **kwargs,
) -> list:
    """
    Write a series of ``n_slices`` slices stacked along the slice normal. Slice ``k``
    holds ``slice_pixels(k)``. With ``reverse_instances`` the instance numbers
    decrease along the normal.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    study_uid = study_uid or generate_uid()
    series_uid = series_uid or generate_uid()
    normal = np.cross(orientation[:3], orientation[3:])

    files = []

    for k in range(n_slices):
        instance = n_slices - k if reverse_instances else k + 1
        files.append(
            str(
                write_dicom(
                    directory / f"{prefix}{k:03d}.dcm",
                    slice_pixels(k),
                    study_uid=study_uid,
                    series_uid=series_uid,
                    instance=instance,
                    position=k * slice_spacing * normal,
                    orientation=orientation,
                    **kwargs,
                )
            )
        )

    return files


@pytest.fixture
def series_factory():
    """Return the helper that writes synthetic DICOM series."""
    return make_series

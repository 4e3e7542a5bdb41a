import os
import nibabel as nib
import numpy as np
import pytest

from pathlib import Path
from conftest import slice_pixels
from dicomtonifti.data import nifti_conversion
from dicomtonifti.data.nifti_conversion import (
    MultipleSeriesError,
    add_compressed_suffix,
    check_slice_order,
    convert_files,
    convert_paths,
    make_filename,
)
from dicomtonifti.options import ConversionOptions
from dicomtonifti.utils import ConversionError, ErrorKind, OutputDirectoryError

META = {
    "PatientName": "",
    "PatientID": "12345",
    "StudyDescription": "Brain",
    "StudyID": "1",
    "SeriesDescription": "AXIAL",
    "SeriesNumber": "3",
}


def test_make_filename_uses_id_without_name():
    assert make_filename("/out", META) == os.path.join("/out", "12345", "Brain-1", "AXIAL_3.nii")
    assert make_filename("/out", dict(META, PatientName="UNKNOWN")).startswith(
        os.path.join("/out", "12345")
    )


def test_make_filename_prefers_name():
    filename = make_filename("/out", dict(META, PatientName="John_Doe"))
    assert filename == os.path.join("/out", "John_Doe", "Brain-1", "AXIAL_3.nii")


def test_make_filename_sanitizes_fields():
    meta = {
        "PatientName": "Doe^John",
        "StudyDescription": "MR Brain w/o",
        "StudyID": "",
        "SeriesDescription": "T1 (post)",
        "SeriesNumber": "12",
    }

    assert make_filename("out", meta) == os.path.join(
        "out", "Doe_John", "MR_Brain_w_o-UNKNOWN", "T1__post_12.nii"
    )


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("result.nii", "result.nii.gz"),
        ("result.nii.gz", "result.nii.gz"),
        ("result.nii.GZ", "result.nii.GZ"),
        ("result.nii.Gz", "result.nii.Gz"),
        ("result.nii.tgz", "result.nii.tgz.gz"),
        (".gz", ".gz"),
    ],
)
def test_add_compressed_suffix(filename, expected):
    assert add_compressed_suffix(filename) == expected


def test_slice_order_unchanged_by_axis_flip():
    identity = np.eye(4)
    ras_matrix = np.diag([-1.0, -1.0, 1.0, 1.0])

    assert check_slice_order([0, 1, 2], identity, ras_matrix) is False
    assert check_slice_order([2, 1, 0], identity, ras_matrix) is True


def test_slice_order_inverted_by_opposite_slice_direction():
    identity = np.eye(4)
    ras_matrix = np.diag([-1.0, -1.0, -1.0, 1.0])

    assert check_slice_order([0, 1, 2], identity, ras_matrix) is True
    assert check_slice_order([2, 1, 0], identity, ras_matrix) is False


def test_slice_order_single_slice():
    assert check_slice_order([0], np.eye(4), np.diag([-1.0, -1.0, 1.0, 1.0])) is False


def test_slice_order_threshold():
    ras_matrix = np.diag([-1.0, -1.0, -0.05, 1.0])
    assert check_slice_order([0, 1], np.eye(4), ras_matrix) is False


def capture_writer(monkeypatch) -> list:
    calls = []

    def fake_write_nifti(array, spacing, filename, **kwargs):
        calls.append(dict(kwargs, array=array, filename=filename))
        return filename

    monkeypatch.setattr(nifti_conversion, "write_nifti", fake_write_nifti)

    return calls


@pytest.mark.parametrize(
    "iop, reverse_instances, expected_qfac",
    [
        ((1, 0, 0, 0, 1, 0), False, 1.0),
        ((1, 0, 0, 0, 1, 0), True, -1.0),
        ((1, 0, 0, 0, -1, 0), False, -1.0),
        ((1, 0, 0, 0, -1, 0), True, 1.0),
    ],
)
def test_convert_series_keeps_acquisition_order(
    tmp_path: Path, series_factory, monkeypatch, iop, reverse_instances, expected_qfac
):
    calls = capture_writer(monkeypatch)
    files = series_factory(tmp_path, orientation=iop, reverse_instances=reverse_instances)

    # instance order, as produced by the sorter
    if reverse_instances:
        files = files[::-1]

    options = ConversionOptions(output="out.nii", no_slice_reordering=True)
    nifti_conversion.convert_series(files, "out.nii", options)

    assert calls[0]["qfac"] == expected_qfac


def test_convert_series_reorders_by_default(tmp_path: Path, series_factory, monkeypatch):
    calls = capture_writer(monkeypatch)
    files = series_factory(tmp_path, orientation=(1, 0, 0, 0, -1, 0))

    nifti_conversion.convert_series(files, "out.nii", ConversionOptions(output="out.nii"))

    assert calls[0]["qfac"] == 1.0
    assert calls[0]["qform"] is not None
    assert calls[0]["sform"] is not None


def test_convert_series_without_forms(tmp_path: Path, series_factory, monkeypatch):
    calls = capture_writer(monkeypatch)
    files = series_factory(tmp_path)
    options = ConversionOptions(output="out.nii", no_qform=True, no_sform=True)

    nifti_conversion.convert_series(files, "out.nii", options)

    assert calls[0]["qform"] is None
    assert calls[0]["sform"] is None


def test_convert_series_without_row_or_column_reordering(
    tmp_path: Path, series_factory, monkeypatch
):
    calls = capture_writer(monkeypatch)
    files = series_factory(tmp_path, n_slices=1)
    options = ConversionOptions(
        output="out.nii", no_row_reordering=True, no_column_reordering=True
    )

    nifti_conversion.convert_series(files, "out.nii", options)

    np.testing.assert_array_equal(calls[0]["array"][0], slice_pixels(0))


def test_single_series(tmp_path: Path, series_factory):
    files = series_factory(tmp_path / "dicom")
    output = str(tmp_path / "result.nii")
    options = ConversionOptions(output=output, compress=True)

    assert convert_files(files, options) == [output + ".gz"]
    assert not os.path.exists(output)

    data = np.asanyarray(nib.load(output + ".gz").dataobj)
    assert data.shape == (5, 4, 3)

    # columns and rows are reversed for axial images
    for k in range(3):
        np.testing.assert_array_equal(data[:, :, k], slice_pixels(k)[::-1, ::-1].T)


def test_single_series_multiple_found(tmp_path: Path, series_factory):
    files = series_factory(tmp_path / "a") + series_factory(tmp_path / "b")
    options = ConversionOptions(output=str(tmp_path / "result.nii"))

    with pytest.raises(MultipleSeriesError, match="Found 2 series"):
        convert_files(files, options)


def write_study(directory: Path, series_factory) -> list:
    common = dict(
        study_uid="1.2.840.1",
        patient_name="Doe^John",
        patient_id="12345",
        study_description="Brain",
        study_id="7",
    )
    return series_factory(
        directory / "s1",
        series_uid="1.2.840.1.1",
        series_description="AXIAL T1",
        series_number=1,
        **common,
    ) + series_factory(
        directory / "s2",
        series_uid="1.2.840.1.2",
        series_description="AXIAL T2",
        series_number=2,
        **common,
    )


def test_batch(tmp_path: Path, series_factory, monkeypatch, capsys):
    files = write_study(tmp_path / "dicom", series_factory)
    out = tmp_path / "out"
    out.mkdir()

    makedirs_calls = []
    makedirs = os.makedirs

    def counting_makedirs(name, *args, **kwargs):
        makedirs_calls.append(name)
        return makedirs(name, *args, **kwargs)

    monkeypatch.setattr(os, "makedirs", counting_makedirs)

    options = ConversionOptions(output=str(out), batch=True)
    outputs = convert_files(files, options)

    expected = [
        str(out / "Doe_John" / "Brain-7" / "AXIAL_T1_1.nii"),
        str(out / "Doe_John" / "Brain-7" / "AXIAL_T2_2.nii"),
    ]

    assert outputs == expected
    assert all(os.path.exists(f) for f in expected)
    # os.makedirs calls itself for missing parents
    study_dir = str(out / "Doe_John" / "Brain-7")
    assert makedirs_calls.count(study_dir) == 1
    assert [c for c in makedirs_calls if c.endswith("Brain-7")] == [study_dir]
    assert capsys.readouterr().out.splitlines() == expected


def test_batch_silent_and_compressed(tmp_path: Path, series_factory, capsys):
    files = write_study(tmp_path / "dicom", series_factory)
    out = tmp_path / "out"
    out.mkdir()

    options = ConversionOptions(output=str(out), batch=True, compress=True, silent=True)
    outputs = convert_files(files, options)

    assert all(f.endswith(".nii.gz") and os.path.exists(f) for f in outputs)
    assert capsys.readouterr().out == ""


def test_batch_directory_error(tmp_path: Path, series_factory):
    files = write_study(tmp_path / "dicom", series_factory)
    out = tmp_path / "out"
    out.mkdir()
    # a file where the patient directory should be
    (out / "Doe_John").write_text("")

    options = ConversionOptions(output=str(out), batch=True, silent=True)

    with pytest.raises(OutputDirectoryError, match="Cannot create directory"):
        convert_files(files, options)


def test_convert_paths(tmp_path: Path, series_factory):
    write_study(tmp_path / "dicom", series_factory)
    out = tmp_path / "out"
    out.mkdir()

    options = ConversionOptions(output=str(out), batch=True, recurse=True, silent=True)

    first = convert_paths([str(tmp_path / "dicom")], options)
    second = convert_paths([str(tmp_path / "dicom")], options)

    assert len(first) == 2
    assert first == second


def test_convert_paths_without_recurse(tmp_path: Path, series_factory):
    write_study(tmp_path / "dicom", series_factory)
    out = tmp_path / "out"
    out.mkdir()

    options = ConversionOptions(output=str(out), batch=True, silent=True)

    assert convert_paths([str(tmp_path / "dicom")], options) == []


def test_convert_paths_error_stops_run(tmp_path: Path, series_factory):
    files = series_factory(tmp_path / "dicom")
    missing = str(tmp_path / "missing.dcm")

    options = ConversionOptions(output=str(tmp_path / "result.nii"))

    with pytest.raises(ConversionError) as error:
        convert_paths(files + [missing], options)

    assert error.value.kind is ErrorKind.FILE_NOT_FOUND
    assert not os.path.exists(tmp_path / "result.nii")

"""
The `__main__` module serves as the entrypoint for the `dicomtonifti` CLI. It has no public
functions intended for use in the Python API. Run 'dicomtonifti --help' in the terminal
for a command usage guide.
"""
import argparse
import os
import sys

from typing import Sequence
from dicomtonifti import __version__

USAGE_STR = """dicomtonifti -o file.nii file1.dcm [file2.dcm ...]
       dicomtonifti -o directory --batch file1.dcm [file2.dcm ...]
"""

HELP_STR = """
This program will convert a DICOM series into a NIfTI file.

It reads the DICOM Position and Orientation metadata, and uses this
information to generate qform and sform entries for the NIfTI header,
after doing a conversion from the DICOM coordinate system to the NIfTI
coordinate system.

By default, it will also reorder the columns of the image so that
columns with higher indices are further to the patient's right (or
in the case of sagittal images, further anterior).  Likewise, rows
will be rearranged so that rows with higher indices are superior (or
anterior for axial images).  Finally, it will reorder the slices
so that the column direction, row direction, and slice direction
follow the right-hand rule.

If batch mode is enabled, then the filenames will automatically be
generated from the series description in the DICOM meta data:
"PatientName/StudyDescription-ID/SeriesDescription_N.nii.gz".

Here is an example of batch mode that recurses into subdirectories
and compresses the output files, putting the results in the current
directory:

dicomtonifti -brz -o . /path/to/dicom/files
"""


class ArgumentParser(argparse.ArgumentParser):
    """
    An `argparse.ArgumentParser` that prints usage to stderr and exits with status 1 when
    it encounters invalid arguments.
    """

    def error(self, message: str):
        sys.stderr.write(f"\n{message}\n\n")
        self.print_usage(sys.stderr)
        sys.exit(1)


parser = ArgumentParser(
    prog="dicomtonifti",
    usage=USAGE_STR,
    epilog=HELP_STR,
    formatter_class=argparse.RawDescriptionHelpFormatter,
    allow_abbrev=False,
)

parser.add_argument(
    "files",
    nargs="*",
    help="The DICOM files, directories, or wildcard patterns to convert.",
)

parser.add_argument(
    "-o",
    "--output",
    type=str,
    default=None,
    help="The output file (or directory, if --batch).",
)

parser.add_argument(
    "-z",
    "--compress",
    action="store_true",
    help="Compress output files.",
)

parser.add_argument(
    "-r",
    "--recurse",
    action="store_true",
    help="Recurse into subdirectories.",
)

parser.add_argument(
    "-b",
    "--batch",
    action="store_true",
    help="Do multiple series at once.",
)

parser.add_argument(
    "-s",
    "--silent",
    action="store_true",
    help="Do not echo output filenames.",
)

parser.add_argument(
    "-v",
    "--verbose",
    action="store_true",
    help="Verbose error reporting.",
)

parser.add_argument(
    "-L",
    "--follow-symlinks",
    action="store_true",
    help="Follow symbolic links when recursing.",
)

parser.add_argument(
    "--no-slice-reordering",
    action="store_true",
    help="Never reorder the slices.",
)

parser.add_argument(
    "--no-row-reordering",
    action="store_true",
    help="Never reorder the rows.",
)

parser.add_argument(
    "--no-column-reordering",
    action="store_true",
    help="Never reorder the columns.",
)

parser.add_argument(
    "--no-qform",
    action="store_true",
    help="Don't include a qform in the NIfTI file.",
)

parser.add_argument(
    "--no-sform",
    action="store_true",
    help="Don't include an sform in the NIfTI file.",
)

parser.add_argument(
    "--version",
    action="version",
    version=f"%(prog)s {__version__}",
    help="Print the version and exit.",
)


def fail(message: str, usage: bool = False) -> None:
    """
    Print an error message (and optionally the usage) to stderr and exit with status 1.
    """
    if usage:
        sys.stderr.write(f"\n{message}\n\n")
        parser.print_usage(sys.stderr)

    else:
        sys.stderr.write(f"{message}\n")

    sys.exit(1)


def main(argv: Sequence[str] | None = None) -> None:
    """
    The CLI for the `dicomtonifti` library. Run 'dicomtonifti --help' for additional help.
    """
    args = parser.parse_intermixed_args(argv)

    if args.output is None:
        fail("No output file was specified ('-o' <filename>).", usage=True)

    from dicomtonifti.options import ConversionOptions

    options = ConversionOptions.from_namespace(args)

    is_directory = os.path.isdir(options.output)

    if options.batch and not is_directory:
        fail("In batch mode, -o must give an existing directory.")

    elif not options.batch and (
        is_directory or options.output.endswith(("/", os.sep))
    ):
        fail("The -o option must give a file, not a directory.")

    if len(args.files) == 0:
        fail("No input files were specified.", usage=True)

    from dicomtonifti.data import MultipleSeriesError, convert_paths
    from dicomtonifti.utils import (
        ConversionError,
        OutputDirectoryError,
        PatternMatchError,
    )

    try:
        convert_paths(args.files, options)

    except ConversionError as error:
        if options.verbose and error.detail:
            sys.stderr.write(f"{error.detail}\n")

        fail(str(error))

    except (OutputDirectoryError, PatternMatchError, MultipleSeriesError) as error:
        if options.verbose and error.__cause__ is not None:
            sys.stderr.write(f"{error.__cause__}\n")

        fail(str(error))

    sys.exit(0)


if __name__ == "__main__":
    main()


__all__ = []

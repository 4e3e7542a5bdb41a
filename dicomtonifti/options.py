"""
The `options` module contains the immutable configuration used for a conversion run.

Public Classes
--------------
ConversionOptions
    A snapshot of the command line options that control discovery, conversion, and
    naming of the output files.
"""
import argparse

from dataclasses import dataclass


@dataclass(frozen=True)
class ConversionOptions:
    """
    A snapshot of the command line options that control discovery, conversion, and
    naming of the output files.

    Attributes
    ----------
    output: str
        The output NIfTI file, or the output directory if `batch` is True.

    compress: bool
        Whether to gzip the output files.

    recurse: bool
        Whether to recurse into subdirectories of the input directories.

    follow_symlinks: bool
        Whether to follow symbolic links to directories when recursing.

    no_slice_reordering: bool
        Whether to keep the slices in their original acquisition order.

    no_row_reordering: bool
        Whether to keep the rows in their original order.

    no_column_reordering: bool
        Whether to keep the columns in their original order.

    no_qform: bool
        Whether to omit the qform from the NIfTI header.

    no_sform: bool
        Whether to omit the sform from the NIfTI header.

    batch: bool
        Whether to convert multiple series, generating filenames from the metadata.

    silent: bool
        Whether to suppress printing the output filenames in batch mode.

    verbose: bool
        Whether to report warnings and the underlying cause of errors.
    """

    output: str
    compress: bool = False
    recurse: bool = False
    follow_symlinks: bool = False
    no_slice_reordering: bool = False
    no_row_reordering: bool = False
    no_column_reordering: bool = False
    no_qform: bool = False
    no_sform: bool = False
    batch: bool = False
    silent: bool = False
    verbose: bool = False

    @classmethod
    def from_namespace(cls, args: argparse.Namespace) -> "ConversionOptions":
        """
        Create the options from the parsed command line arguments.

        Parameters
        ----------
        args: argparse.Namespace
            The namespace returned by the `dicomtonifti` argument parser.

        Returns
        -------
        ConversionOptions
            The corresponding options.
        """
        return cls(
            output=str(args.output),
            compress=args.compress,
            recurse=args.recurse,
            follow_symlinks=args.follow_symlinks,
            no_slice_reordering=args.no_slice_reordering,
            no_row_reordering=args.no_row_reordering,
            no_column_reordering=args.no_column_reordering,
            no_qform=args.no_qform,
            no_sform=args.no_sform,
            batch=args.batch,
            silent=args.silent,
            verbose=args.verbose,
        )


__all__ = ["ConversionOptions"]

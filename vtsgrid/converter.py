#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Glue between array data produced by a numerical code and the StructuredGrid
writer: takes coordinate arrays (X, Y, optional Z) plus named scalar fields,
derives the grid extents from the array shapes and writes a .vts file.

──────────────────────────────────────────────────────────────────────────────
INPUT FILES
──────────────────────────────────────────────────────────────────────────────
 - HDF5 (.h5 / .hdf5): datasets X, Y and optionally Z at the root, one
   dataset per scalar field inside the group "fields".
 - NumPy archive (.npz): keys X, Y and optionally Z; every other key is a
   scalar field.

Arrays are indexed [row, col, layer] and flattened in column-major order,
the memory order of the tools (Octave, MATLAB, Fortran) that usually produce
them.

"""


from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import h5py as h5

from .writer import GridExporter, PreconditionViolation

INPUT_EXTENSIONS = {".h5", ".hdf5", ".npz"}
COORDINATE_KEYS = ("X", "Y", "Z")


def setup_logging(verbose: bool) -> None:
    """
    Configure global logging.

    Args:
        verbose: If True, set DEBUG level, otherwise INFO.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from libraries (adjustable)
    logging.getLogger("h5py").setLevel(logging.WARNING)


logger = logging.getLogger("vtsgrid")


def parse_fields_arg(arg: Optional[str]) -> Optional[List[str]]:
    """
    Parse the --fields argument which is a comma-separated list of field names.

    Returns None if user didn't pass anything (means export every field).
    """

    if arg is None:
        return None

    fields = [f.strip() for f in arg.split(",") if f.strip() != ""]

    return fields if fields else None


def grid_extents_from_arrays(X, Y, Z=None) -> Tuple[int, int, int]:
    """
    Cell counts implied by the coordinate array shapes.

    Rows come from the first axis of X, columns from the second axis of Y and
    layers from the third axis of Z (0 when Z is absent).
    """
    X = np.asarray(X)
    Y = np.asarray(Y)

    if X.ndim < 1 or X.shape[0] == 0:
        raise PreconditionViolation(f"X must have at least one point along its first axis, got shape {X.shape}")
    if Y.ndim < 2 or Y.shape[1] == 0:
        raise PreconditionViolation(f"Y must be at least 2-D with points along its second axis, got shape {Y.shape}")

    num_rows = X.shape[0] - 1
    num_cols = Y.shape[1] - 1
    num_layers = 0

    if Z is not None:
        Z = np.asarray(Z)
        if Z.ndim == 2:
            # a matrix is a single layer
            num_layers = 0
        elif Z.ndim == 3 and Z.shape[2] > 0:
            num_layers = Z.shape[2] - 1
        else:
            raise PreconditionViolation(f"Z must be 2-D or 3-D, got shape {Z.shape}")

    return num_rows, num_cols, num_layers


def _flatten(values) -> np.ndarray:
    return np.ravel(np.asarray(values, dtype=np.float64), order="F")


def write_field(
    filename,
    var_names: Sequence[str],
    variables: Sequence,
    X,
    Y,
    Z=None,
    exporter: Optional[GridExporter] = None,
) -> None:
    """
    Write named fields sampled on the grid (X, Y[, Z]) to a .vts file.

    Args:
        filename: destination path.
        var_names: field names, one per entry of `variables`.
        variables: field arrays, each with at least one value per grid point.
        X, Y, Z: coordinate arrays indexed [row, col, layer]; Z may be omitted
            for a 2-D grid.
        exporter: optional preconfigured GridExporter.

    Fields are written sorted by name; a repeated name keeps its last array.
    """
    if len(var_names) != len(variables):
        raise PreconditionViolation(
            f"Got {len(var_names)} field name(s) but {len(variables)} field array(s)"
        )

    num_rows, num_cols, num_layers = grid_extents_from_arrays(X, Y, Z)
    logger.debug("num_rows %d num_cols %d num_layers %d", num_rows, num_cols, num_layers)

    fields: Dict[str, np.ndarray] = {}
    for name, values in zip(var_names, variables):
        fields[name] = _flatten(values)

    exporter = exporter or GridExporter()
    exporter.export(
        filename,
        _flatten(X),
        _flatten(Y),
        None if Z is None else _flatten(Z),
        fields,
        num_rows,
        num_cols,
        num_layers,
    )


def read_grid_file(path: str) -> Dict[str, object]:
    """
    Load coordinates and fields from an HDF5 or .npz input file.

    Returns:
        dict with keys "X", "Y", "Z" (None for a 2-D grid) and "fields"
        (dict name -> array, in file order).

    Raises:
        ValueError for an unsupported extension or missing coordinates.
        OSError when the file cannot be read.
    """
    ext = os.path.splitext(path)[1].lower()

    if ext not in INPUT_EXTENSIONS:
        raise ValueError(f"Unsupported input file '{path}'; expected one of {sorted(INPUT_EXTENSIONS)}")

    fields: Dict[str, np.ndarray] = {}

    if ext == ".npz":
        with np.load(path) as npz:
            coords = {key: np.asarray(npz[key]) for key in COORDINATE_KEYS if key in npz.files}
            for key in npz.files:
                if key not in COORDINATE_KEYS:
                    fields[key] = np.asarray(npz[key])
    else:
        with h5.File(path, "r") as f:
            coords = {key: f[key][()] for key in COORDINATE_KEYS if key in f}
            if "fields" in f:
                for key in f["fields"].keys():
                    fields[key] = f["fields"][key][()]

    for key in ("X", "Y"):
        if key not in coords:
            raise ValueError(f"Input file '{path}' has no '{key}' coordinates")

    return {"X": coords["X"], "Y": coords["Y"], "Z": coords.get("Z"), "fields": fields}


class GridConverter:
    """
    Convert grid input files (HDF5 / .npz) into .vts StructuredGrid files.

    Loading, field selection and writing are separate methods so each step can
    be exercised on its own.
    """

    def __init__(
        self,
        output_prefix: str = "grid",
        fields: Optional[List[str]] = None,
        dry_run: bool = False,
        output_directory: Optional[str] = None,
        precision: Optional[int] = None,
    ):
        self.output_prefix = output_prefix

        # User-requested fields (None = every field in the file)
        self.requested_fields = fields

        self.dry_run = dry_run

        # None => next to the input file
        self.output_directory = output_directory

        self.exporter = GridExporter() if precision is None else GridExporter(precision)

    def output_path(self, input_path: str) -> str:
        """Destination .vts path for `input_path`."""
        stem = os.path.splitext(os.path.basename(input_path))[0]
        directory = self.output_directory or os.path.dirname(os.path.abspath(input_path))
        return os.path.join(directory, f"{self.output_prefix}_{stem}.vts")

    def read_data(self, input_path: str) -> Optional[Dict[str, object]]:
        """
        Load one input file.
        On failure, logs the error and returns None (so caller can handle).
        """
        try:
            return read_grid_file(input_path)
        except (OSError, ValueError) as e:
            logger.error("Failed to load '%s': %s", input_path, e)
            logger.debug("Exception details:", exc_info=True)
            return None

    def _select_fields(self, available: Dict[str, np.ndarray]) -> Tuple[Dict[str, np.ndarray], List[str]]:
        """
        Apply the requested field list to the fields found in the file.

        Returns:
            (selected fields, names requested but not found)
        """
        if self.requested_fields is None:
            return dict(available), []

        selected = {}
        missing = []
        for name in self.requested_fields:
            if name in available:
                selected[name] = available[name]
            else:
                missing.append(name)

        return selected, missing

    def convert_one(self, input_path: str, data: Dict[str, object]) -> Optional[str]:
        """
        Write one loaded input as a .vts file (unless dry-run).

        Returns:
            the written path, or None for a dry run.
        """
        fields, missing = self._select_fields(data["fields"])

        for name in missing:
            logger.warning("Requested field '%s' not found in '%s'; skipping.", name, input_path)

        output_filename = self.output_path(input_path)

        if self.dry_run:
            num_rows, num_cols, num_layers = grid_extents_from_arrays(data["X"], data["Y"], data["Z"])
            logger.info(
                "[dry-run] Would write '%s' with fields %s (cells: %d x %d x %d).",
                output_filename,
                sorted(fields),
                num_rows,
                num_cols,
                num_layers,
            )
            return None

        os.makedirs(os.path.dirname(output_filename), exist_ok=True)

        write_field(
            output_filename,
            list(fields.keys()),
            list(fields.values()),
            data["X"],
            data["Y"],
            data["Z"],
            exporter=self.exporter,
        )

        return output_filename

    def process_input(self, input_path: str) -> Optional[str]:
        """
        Read and convert a single input file (load + convert_one).
        This wrapper isolates exceptions so callers (parallel runner) can continue on failure.
        """
        data = self.read_data(input_path)
        if data is None:
            logger.warning("No data for '%s'; skipping.", input_path)
            return None

        try:
            return self.convert_one(input_path, data)
        except Exception as e:
            logger.exception("Failed to convert '%s': %s", input_path, e)
            return None


def list_fields_for_input(input_path: str) -> List[str]:
    """
    Return the scalar field names stored in an input file, or an empty list
    when the file cannot be read.
    """
    data = GridConverter().read_data(input_path)

    if data is None:
        return []

    return list(data["fields"].keys())

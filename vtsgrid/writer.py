#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Writes a structured grid and its point-sampled scalar fields as a VTK XML
StructuredGrid document (.vts, ASCII payload) that ParaView and other
VTK-based tools can read.

──────────────────────────────────────────────────────────────────────────────
HOW A DOCUMENT IS BUILT
──────────────────────────────────────────────────────────────────────────────
 1. Extents   : cell counts per axis -> point counts (cells + 1) and total N
 2. PointData : one Float64 DataArray per field, N values in buffer order
 3. Points    : N coordinate triples, columns outermost, rows in the middle,
                layers innermost; z is 0 everywhere on a 2-D grid
 4. Closing tags, flush, close

──────────────────────────────────────────────────────────────────────────────
CALLER CONTRACT
──────────────────────────────────────────────────────────────────────────────
 - Coordinate and field buffers are flat and already laid out in the order
   the points are written: flat index = ((col * pr) + row) * pl + layer.
 - Every buffer holds at least N values. Shorter buffers, negative extents
   and bad field names are rejected with PreconditionViolation before the
   output is opened.
 - Any OSError while opening or writing the output surfaces as IOFailure.

"""


from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from contextlib import contextmanager
from numbers import Integral
from typing import Iterator, List, NamedTuple, Optional, Sequence, TextIO, Tuple, Union
from xml.sax.saxutils import escape

import numpy as np

logger = logging.getLogger("vtsgrid")

Sink = Union[str, "os.PathLike[str]", TextIO]
FieldList = List[Tuple[str, np.ndarray]]

# Round-trips double precision to 15+ significant digits
DEFAULT_PRECISION = 16
VALUES_PER_LINE = 6

_ATTR_ENTITIES = {'"': "&quot;"}


class GridExportError(Exception):
    """Base class for errors raised while exporting a structured grid."""


class PreconditionViolation(GridExportError, ValueError):
    """The caller broke the input contract (extents, buffer sizes, field names)."""


class IOFailure(GridExportError, OSError):
    """The output could not be opened, written or closed."""


class GridExtent(NamedTuple):
    """Cell and point counts of a structured grid."""

    num_rows: int
    num_cols: int
    num_layers: int
    pr: int
    pc: int
    pl: int
    npoints: int

    @property
    def is_flat(self) -> bool:
        """True for a 2-D grid (no cells along the layer axis)."""
        return self.pl == 1

    def descriptor(self) -> str:
        """Extent attribute value; uses cell counts, as the format expects."""
        return f"0 {self.num_rows} 0 {self.num_cols} 0 {self.num_layers}"


def compute_extents(num_rows: int, num_cols: int, num_layers: int) -> GridExtent:
    """
    Derive point counts from the cell counts of each axis.

    Args:
        num_rows, num_cols, num_layers: number of cells along each axis (>= 0).
            num_layers == 0 marks a 2-D grid.

    Returns:
        GridExtent with pr/pc/pl = cells + 1 and npoints = pr * pc * pl.

    Raises:
        PreconditionViolation if an extent is not a non-negative integer.
    """
    for label, value in (("num_rows", num_rows), ("num_cols", num_cols), ("num_layers", num_layers)):
        if isinstance(value, bool) or not isinstance(value, Integral):
            raise PreconditionViolation(f"{label} must be an integer, got {value!r}")
        if value < 0:
            raise PreconditionViolation(f"{label} must be non-negative, got {value}")

    num_rows, num_cols, num_layers = int(num_rows), int(num_cols), int(num_layers)
    pr, pc, pl = num_rows + 1, num_cols + 1, num_layers + 1

    return GridExtent(num_rows, num_cols, num_layers, pr, pc, pl, pr * pc * pl)


def ordered_fields(fields) -> FieldList:
    """
    Normalize fields into an explicit list of (name, buffer) pairs.

    A sequence of pairs keeps its order. A mapping is sorted by name so that
    the output does not depend on how the mapping was filled.
    """
    if fields is None:
        return []

    if isinstance(fields, Mapping):
        pairs = sorted(fields.items(), key=lambda item: str(item[0]))
    else:
        pairs = list(fields)

    result: FieldList = []
    seen = set()

    for pair in pairs:
        try:
            name, values = pair
        except (TypeError, ValueError):
            raise PreconditionViolation(f"Fields must be (name, values) pairs, got {pair!r}")

        if not isinstance(name, str) or name == "":
            raise PreconditionViolation(f"Field name must be a non-empty string, got {name!r}")
        if "," in name:
            raise PreconditionViolation(f"Field name must not contain a comma, got '{name}'")
        if name in seen:
            raise PreconditionViolation(f"Duplicate field name: '{name}'")

        seen.add(name)
        result.append((name, values))

    return result


def _as_buffer(label: str, values, npoints: int) -> np.ndarray:
    """Flat float64 view of `values`, checked to hold at least `npoints` entries."""
    if values is None:
        raise PreconditionViolation(f"{label} buffer is missing")

    try:
        buf = np.asarray(values, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        raise PreconditionViolation(f"{label} buffer is not numeric: {e}") from e

    if buf.size < npoints:
        raise PreconditionViolation(
            f"{label} buffer holds {buf.size} values but the grid has {npoints} points"
        )

    return buf


def _quote(name: str) -> str:
    return escape(name, _ATTR_ENTITIES)


def _format_values(values: Sequence[float], precision: int = DEFAULT_PRECISION) -> str:
    spec = f".{precision}g"
    return " ".join(format(float(v), spec) for v in values)


def write_field_block(
    fh: TextIO,
    fields: FieldList,
    npoints: int,
    precision: int = DEFAULT_PRECISION,
) -> None:
    """
    Write the PointData section: the combined scalar name list, then one
    Float64 DataArray per field with its first `npoints` values.

    Args:
        fh: text stream to write to.
        fields: ordered (name, flat buffer) pairs; each buffer holds >= npoints values.
        npoints: total number of grid points.
        precision: significant digits per value.
    """
    # Trailing comma after the last name is kept for compatibility with
    # files written by earlier exporters.
    scalars = "".join(f"{_quote(name)}," for name, _ in fields)
    fh.write(f'      <PointData Scalars="{scalars}">\n')

    for name, values in fields:
        fh.write(f'        <DataArray type="Float64" Name="{_quote(name)}" format="ascii">\n')
        for start in range(0, npoints, VALUES_PER_LINE):
            chunk = values[start:min(start + VALUES_PER_LINE, npoints)]
            fh.write(f"          {_format_values(chunk, precision)}\n")
        fh.write("        </DataArray>\n")

    fh.write("      </PointData>\n")


def write_point_block(
    fh: TextIO,
    X: np.ndarray,
    Y: np.ndarray,
    Z: Optional[np.ndarray],
    extent: GridExtent,
    precision: int = DEFAULT_PRECISION,
) -> None:
    """
    Write the Points section: one (x y z) triple per grid point.

    Points are visited with the column index outermost, the row index in the
    middle and the layer index innermost. X, Y and Z are all read at
    ((col * pr) + row) * pl + layer. On a 2-D grid Z is never read and every
    z component is written as 0.

    Each output line holds the pl triples of one (col, row) pair.
    """
    pr, pc, pl = extent.pr, extent.pc, extent.pl
    spec = f".{precision}g"

    if extent.is_flat:
        Z = np.zeros(extent.npoints, dtype=np.float64)

    fh.write("      <Points>\n")
    fh.write('        <DataArray type="Float64" NumberOfComponents="3" format="ascii">\n')

    for col in range(pc):
        for row in range(pr):
            base = (col * pr + row) * pl
            triples = []
            for layer in range(pl):
                idx = base + layer
                triples.append(
                    f"{format(float(X[idx]), spec)} {format(float(Y[idx]), spec)} {format(float(Z[idx]), spec)}"
                )
            fh.write("          " + "  ".join(triples) + "\n")

    fh.write("        </DataArray>\n")
    fh.write("      </Points>\n")


@contextmanager
def _open_sink(sink: Sink) -> Iterator[TextIO]:
    """
    Yield a writable text stream for `sink`.

    Paths are opened here and closed on exit. Streams passed in by the caller
    are flushed but left open.
    """
    if hasattr(sink, "write"):
        yield sink
        sink.flush()
        return

    # Non-ASCII names become character references, so the file stays ASCII.
    with open(sink, "w", encoding="ascii", errors="xmlcharrefreplace", newline="\n") as fh:
        yield fh


def _sink_name(sink: Sink) -> str:
    if hasattr(sink, "write"):
        return getattr(sink, "name", repr(sink))
    return os.fspath(sink)


class GridExporter:
    """
    Export a structured grid and its point fields as one VTK StructuredGrid
    document.

    The exporter keeps no state between calls: every export validates its
    inputs, writes the whole document in one pass and releases the output
    before returning.
    """

    def __init__(self, precision: int = DEFAULT_PRECISION):
        if isinstance(precision, bool) or not isinstance(precision, Integral):
            raise ValueError(f"precision must be an integer, got {precision!r}")
        if precision < 1:
            raise ValueError(f"precision must be >= 1, got {precision}")
        self.precision = int(precision)

    def _validate(self, X, Y, Z, fields, extent: GridExtent):
        n = extent.npoints

        xb = _as_buffer("X", X, n)
        yb = _as_buffer("Y", Y, n)
        zb = None if extent.is_flat else _as_buffer("Z", Z, n)

        checked = [
            (name, _as_buffer(f"Field '{name}'", values, n))
            for name, values in ordered_fields(fields)
        ]

        return xb, yb, zb, checked

    def export(
        self,
        sink: Sink,
        X,
        Y,
        Z,
        fields,
        num_rows: int,
        num_cols: int,
        num_layers: int,
    ) -> None:
        """
        Write the grid to `sink`.

        Args:
            sink: destination path, or an open text stream.
            X, Y: flat coordinate buffers (>= N values each).
            Z: flat coordinate buffer, ignored (may be None) when num_layers == 0.
            fields: mapping name -> flat buffer, or sequence of (name, buffer) pairs.
            num_rows, num_cols, num_layers: cell counts along each axis.

        Raises:
            PreconditionViolation: inputs break the contract; nothing is written.
            IOFailure: the sink could not be opened or written.
        """
        extent = compute_extents(num_rows, num_cols, num_layers)
        xb, yb, zb, checked = self._validate(X, Y, Z, fields, extent)

        name = _sink_name(sink)
        logger.debug(
            "Grid extent %s (%d x %d x %d points, %d total), %d field(s)",
            extent.descriptor(), extent.pr, extent.pc, extent.pl, extent.npoints, len(checked),
        )

        t0 = time.time()
        try:
            with _open_sink(sink) as fh:
                fh.write('<VTKFile type="StructuredGrid" version="0.1" byte_order="LittleEndian">\n')
                fh.write(f'  <StructuredGrid WholeExtent="{extent.descriptor()}">\n')
                fh.write(f'    <Piece Extent="{extent.descriptor()}">\n')

                write_field_block(fh, checked, extent.npoints, self.precision)
                write_point_block(fh, xb, yb, zb, extent, self.precision)

                fh.write("    </Piece>\n")
                fh.write("  </StructuredGrid>\n")
                fh.write("</VTKFile>\n")
        except (OSError, ValueError) as e:
            # ValueError covers closed streams and encoding errors of caller streams
            logger.error("Failed to write structured grid to '%s': %s", name, e)
            raise IOFailure(f"Failed to write structured grid to '{name}': {e}") from e

        logger.info("DONE: Saved '%s' (%d points, %d fields) in %.2fs", name, extent.npoints, len(checked), time.time() - t0)


def export(sink: Sink, X, Y, Z, fields, num_rows: int, num_cols: int, num_layers: int) -> None:
    """Write one StructuredGrid document with a default GridExporter."""
    GridExporter().export(sink, X, Y, Z, fields, num_rows, num_cols, num_layers)

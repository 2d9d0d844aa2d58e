# -*- coding: utf-8 -*-

"""

vtsgrid: structured grid → VTK StructuredGrid (.vts) writer
===========================================================

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
vtsgrid writes a 3-D (or 2-D) structured grid and any number of named scalar
fields sampled at its points as a VTK XML StructuredGrid file that ParaView
and other VTK-based visualization tools can read.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- Finite-difference and finite-volume codes keep their grids as plain
  coordinate arrays plus one array per field; visualization tools want a
  self-describing grid file.
- The ASCII StructuredGrid format needs no VTK installation to write and
  keeps the grid topology implicit in the declared extents.

"""

from .writer import (
    GridExporter,
    GridExtent,
    GridExportError,
    IOFailure,
    PreconditionViolation,
    compute_extents,
    export,
    ordered_fields,
    write_field_block,
    write_point_block,
)

from .converter import (
    GridConverter,
    grid_extents_from_arrays,
    list_fields_for_input,
    parse_fields_arg,
    read_grid_file,
    write_field,
)

from .parallel import (
    process_single_input,
    run_parallel_conversion,
)

__version__ = "1.0.0"

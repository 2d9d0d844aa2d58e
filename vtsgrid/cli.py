#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
CLI QUICK START (copy–paste, then tweak)
──────────────────────────────────────────────────────────────────────────────
Convert two grid dumps into .vts files, keeping only two fields:

    vtsgrid run/grid_0001.h5 run/grid_0002.h5 \
        --output-prefix heat \
        --output-dir ./vts \
        --fields temperature,pressure \
        --nproc 2 --verbose

Exploration mode :

    # Lists the scalar fields stored in the first input (no conversion happens)
    vtsgrid run/grid_0001.h5 --list-fields

    # Dry-run: load and check inputs, report what would be written
    vtsgrid run/grid_*.npz --dry-run --verbose

Positional args:

    INPUT              One or more .h5/.hdf5/.npz files holding X, Y, optional Z
                       and the scalar fields (see vtsgrid.converter).

Optional args:

    --output-prefix / -o   Prefix for output files (default: grid)
    --output-dir       Directory for the .vts files (default: next to each input)
    --fields           Comma-separated fields to export (default: all)
    --nproc            Worker processes for batch conversion (default: 1)
    --precision        Significant digits per value (default: 16)
    --verbose          step-by-step narration
    --list-fields      Only list available fields and exit
    --dry-run          Run everything except the actual write step

"""


import os
import sys
import argparse
import logging

from .converter import parse_fields_arg, list_fields_for_input, setup_logging
from .parallel import run_parallel_conversion

logger = logging.getLogger("vtsgrid")


def main() -> None:

    """
    Parse CLI args and run the conversion pipeline.
    """

    parser = argparse.ArgumentParser(description="VTK StructuredGrid (.vts) writer for gridded field data")

    parser.add_argument("inputs", nargs="+", help="Grid input files (.h5, .hdf5 or .npz)")

    parser.add_argument("-o", "--output-prefix", dest="output_prefix", default="grid", help="Output file prefix (default: grid)")
    parser.add_argument("--output-dir", dest="output_dir", default=None, help="Directory for output files (default: next to each input)")

    parser.add_argument("--fields", type=parse_fields_arg, default=None, help="Comma-separated list of fields to include (e.g. temperature,pressure). If omitted, every field is exported.")

    parser.add_argument("--list-fields", action="store_true", help="List available fields in the first input and exit.")

    parser.add_argument("--nproc", type=int, default=None, help="Number of worker processes (default: 1).")
    parser.add_argument("--precision", type=int, default=None, help="Significant digits per written value (default: 16).")

    # Utility flags
    parser.add_argument("--dry-run", action="store_true", help="Print plan without writing files.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")

    args = parser.parse_args()

    # Configure logging early
    setup_logging(args.verbose)

    inputs = [os.path.abspath(p) for p in args.inputs]

    for path in inputs:
        if not os.path.exists(path):
            logger.error("Input file not found: %s", path)
            raise FileNotFoundError(f"Input file not found: {path}")

    if args.nproc is not None and args.nproc < 1:
        parser.error(f"Invalid --nproc: {args.nproc}. Must be >= 1.")

    if args.precision is not None and args.precision < 1:
        parser.error(f"Invalid --precision: {args.precision}. Must be >= 1.")

    if args.list_fields:
        first = inputs[0]
        logger.info("Listing fields in '%s'...", first)
        fields = list_fields_for_input(first)

        if fields:
            print("Available fields:")
            for f in fields:
                print(" -", f)
        else:
            print("No fields found (see logs for details).")
        return

    try:
        results = run_parallel_conversion(
            inputs=inputs,
            output_prefix=args.output_prefix,
            fields=args.fields,
            dry_run=args.dry_run,
            verbose=args.verbose,
            nproc=args.nproc,
            output_directory=args.output_dir,
            precision=args.precision,
        )
    except Exception as e:
        logger.exception("FATAL: Unexpected error: %s", e)
        raise

    written = [r for r in results if r is not None]

    if args.dry_run:
        print(f"Dry run completed for {len(inputs)} input(s).")
        return

    print(f"Completed: {len(written)} of {len(inputs)} file(s) written.")
    for path in written:
        print(" -", path)

    if len(written) < len(inputs):
        sys.exit(1)


if __name__ == "__main__":
    main()

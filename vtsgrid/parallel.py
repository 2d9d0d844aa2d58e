#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

Parallel execution utilities for vtsgrid.

"""

from __future__ import annotations

from functools import partial
from typing import List, Optional

import logging
import time
import concurrent.futures

from .converter import GridConverter, setup_logging

logger = logging.getLogger("vtsgrid")


def process_single_input(
    input_path: str,
    output_prefix: str,
    fields: Optional[List[str]],
    dry_run: bool,
    verbose: bool,
    output_directory: Optional[str] = None,
    precision: Optional[int] = None,
) -> Optional[str]:
    """
    Worker function executed in each process. It configures logging and runs conversion
    for a single input file.

    Args:
        input_path: Grid input file (.h5/.hdf5/.npz).
        output_prefix: File prefix for output files.
        fields: Optional list of scalar fields to export.
        dry_run: Flag to skip writing output files.
        verbose: Flag for verbose logging.
        output_directory: Optional directory to save output files. If None, uses the input's directory.
        precision: Optional significant digits per written value. If None, uses the writer default.

    Returns:
        Path of the written .vts file, or None on dry-run or failure.
    """
    setup_logging(verbose)

    try:
        conv = GridConverter(
            output_prefix=output_prefix,
            fields=fields,
            dry_run=dry_run,
            output_directory=output_directory,
            precision=precision,
        )
        return conv.process_input(input_path)
    except Exception:
        # Other workers keep going
        logger.exception("[worker %s] Unexpected worker error", input_path)
        return None


def run_parallel_conversion(
    inputs: List[str],
    output_prefix: str = "grid",
    fields: Optional[List[str]] = None,
    dry_run: bool = False,
    verbose: bool = False,
    nproc: Optional[int] = None,
    output_directory: Optional[str] = None,
    precision: Optional[int] = None,
) -> List[Optional[str]]:
    """
    High-level parallel runner that dispatches conversion of multiple input files.

    Parameters:
    - inputs: Grid input files to convert.
    - output_prefix: Prefix for output files.
    - fields: Optional list of scalar fields to export (None = all).
    - dry_run: If True, run without writing output files.
    - verbose: Enable detailed logging.
    - nproc: Number of worker processes.
             If None or not provided, defaults to 1 (serial execution).
             When provided and positive, uses up to min(nproc, number of inputs) parallel workers.
    - output_directory: Optional directory path to store generated output files.
                        If None, each file is written next to its input.
    - precision: Optional significant digits per written value (None = writer default).

    Behavior:
    - Attempts parallel execution using the specified number of workers.
    - On parallel execution failure, falls back to serial processing per input,
      continuing on errors without stopping the entire process.

    Returns:
    - One entry per input: the written path, or None when nothing was written.
    """

    if nproc is not None and nproc > 0:
        nworkers = max(1, min(nproc, len(inputs)))
    else:
        nworkers = 1

    logger.info("Starting on %d worker(s) for %d input(s)", nworkers, len(inputs))
    t0 = time.time()

    worker = partial(
        process_single_input,
        output_prefix=output_prefix,
        fields=fields,
        dry_run=dry_run,
        verbose=verbose,
        output_directory=output_directory,
        precision=precision,
    )

    results: List[Optional[str]] = []

    if nworkers == 1:
        results = [worker(path) for path in inputs]
    else:
        try:
            with concurrent.futures.ProcessPoolExecutor(max_workers=nworkers) as ex:
                results = list(ex.map(worker, inputs))
        except Exception as e:
            logger.error("Parallel execution failed: %s", e)
            logger.info("Falling back to serial execution...")

            results = []
            for path in inputs:
                try:
                    results.append(worker(path))
                except Exception as ew:
                    logger.exception("Serial worker failed for %s: %s", path, ew)
                    results.append(None)

    logger.info("Total elapsed: %.2fs", time.time() - t0)

    return results

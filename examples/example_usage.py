#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

─────────────────────────────────────────────────────────────
Example Usage of vtsgrid
─────────────────────────────────────────────────────────────

This script demonstrates how to write gridded field data as
VTK StructuredGrid (.vts) files.

Features demonstrated:
1. Writing a 2-D plate (no Z array; z is written as 0)
2. Writing a curvilinear 3-D shell sector with two fields
3. Saving the grid to HDF5 and converting it with GridConverter

Open the resulting .vts files in ParaView.

─────────────────────────────────────────────────────────────

"""

import os

import h5py
import numpy as np

from vtsgrid.converter import GridConverter, write_field

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

OUTPUT_DIR = "vts_outputs"

NR, NPHI, NZ = 12, 24, 6


# ──────────────────────────────────────────────────────────────
# Main Example Workflow
# ──────────────────────────────────────────────────────────────

def main():

    os.makedirs(OUTPUT_DIR, exist_ok=True)

    # 2-D plate: points indexed [row, col]
    x, y = np.meshgrid(np.linspace(0.0, 1.0, NR), np.linspace(0.0, 0.5, NPHI), indexing="ij")
    temperature = 300.0 + 50.0 * np.exp(-((x - 0.5) ** 2 + (y - 0.25) ** 2) / 0.02)
    write_field(os.path.join(OUTPUT_DIR, "plate.vts"), ["temperature"], [temperature], x, y)
    print("Wrote plate.vts")

    # 3-D shell sector: points indexed [radius, angle, height]
    r, phi, z = np.meshgrid(
        np.linspace(1.0, 1.2, NR),
        np.linspace(0.0, np.pi / 2, NPHI),
        np.linspace(0.0, 0.3, NZ),
        indexing="ij",
    )
    X, Y = r * np.cos(phi), r * np.sin(phi)
    temperature = 300.0 + 100.0 * z / 0.3
    stress = np.sin(2 * phi) * (r - 1.0)
    write_field(os.path.join(OUTPUT_DIR, "shell.vts"), ["temperature", "stress"], [temperature, stress], X, Y, z)
    print("Wrote shell.vts")

    # Same grid through an HDF5 input file
    h5_path = os.path.join(OUTPUT_DIR, "shell.h5")
    with h5py.File(h5_path, "w") as f:
        f.create_dataset("X", data=X)
        f.create_dataset("Y", data=Y)
        f.create_dataset("Z", data=z)
        f.create_group("fields").create_dataset("temperature", data=temperature)

    converter = GridConverter(output_prefix="converted", output_directory=OUTPUT_DIR)
    written = converter.process_input(h5_path)
    print(f"Converted {h5_path} -> {written}")


# ──────────────────────────────────────────────────────────────
# Entry Point
# ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()

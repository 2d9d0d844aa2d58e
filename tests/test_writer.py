"""
Unit tests for the StructuredGrid writer.

These tests verify that the writer:
1. Derives point extents from cell extents
2. Orders fields deterministically and escapes their names
3. Writes point triples in column / row / layer order
4. Synthesizes z = 0 on 2-D grids
5. Rejects broken inputs before touching the output and reports I/O errors

"""

import io
import xml.etree.ElementTree as ET

import numpy as np
import pytest

from vtsgrid.writer import (
    GridExporter,
    GridExportError,
    IOFailure,
    PreconditionViolation,
    compute_extents,
    export,
    ordered_fields,
    write_field_block,
    write_point_block,
)


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────

def export_to_text(X, Y, Z, fields, num_rows, num_cols, num_layers):
    buf = io.StringIO()
    export(buf, X, Y, Z, fields, num_rows, num_cols, num_layers)
    return buf.getvalue()


def point_triples(doc):
    tokens = doc.find("./StructuredGrid/Piece/Points/DataArray").text.split()
    assert len(tokens) % 3 == 0
    values = [float(t) for t in tokens]
    return [tuple(values[i:i + 3]) for i in range(0, len(values), 3)]


def field_arrays(doc):
    arrays = doc.findall("./StructuredGrid/Piece/PointData/DataArray")
    return [(da.get("Name"), (da.text or "").split()) for da in arrays]


# ──────────────────────────────────────────────────────────────
# Extents
# ──────────────────────────────────────────────────────────────

def test_compute_extents_3d():
    ext = compute_extents(2, 3, 4)
    assert (ext.pr, ext.pc, ext.pl) == (3, 4, 5)
    assert ext.npoints == 60
    assert not ext.is_flat
    assert ext.descriptor() == "0 2 0 3 0 4"


def test_compute_extents_flat_and_single_point():
    assert compute_extents(3, 2, 0).is_flat
    assert compute_extents(0, 0, 0).npoints == 1


def test_compute_extents_accepts_numpy_integers():
    ext = compute_extents(np.int64(1), np.int32(1), np.int64(0))
    assert ext.npoints == 4


@pytest.mark.parametrize("extents", [(-1, 0, 0), (0, -2, 0), (0, 0, -1), (1.5, 1, 1), (True, 1, 1)])
def test_compute_extents_rejects_bad_values(extents):
    with pytest.raises(PreconditionViolation):
        compute_extents(*extents)


# ──────────────────────────────────────────────────────────────
# Field ordering
# ──────────────────────────────────────────────────────────────

def test_ordered_fields_sorts_mappings():
    names = [name for name, _ in ordered_fields({"velocity": [0], "density": [0], "T": [0]})]
    assert names == ["T", "density", "velocity"]


def test_ordered_fields_keeps_pair_order():
    names = [name for name, _ in ordered_fields([("b", [0]), ("a", [0])])]
    assert names == ["b", "a"]


def test_ordered_fields_none_is_empty():
    assert ordered_fields(None) == []


@pytest.mark.parametrize("fields", [[("", [0])], [(3, [0])], [("a", [0]), ("a", [1])], ["abc"], [("u,v", [0])]])
def test_ordered_fields_rejects_bad_names(fields):
    with pytest.raises(PreconditionViolation):
        ordered_fields(fields)


# ──────────────────────────────────────────────────────────────
# Block writers
# ──────────────────────────────────────────────────────────────

def test_field_block_names_and_values():
    buf = io.StringIO()
    fields = [("a", np.array([1.0, 2.0, 3.0, 99.0])), ("b", np.array([0.5, 0.25, 0.125]))]
    write_field_block(buf, fields, 3)
    text = buf.getvalue()

    assert 'Scalars="a,b,"' in text
    assert text.count("<DataArray") == 2
    assert "99" not in text


def test_field_block_wraps_long_arrays():
    buf = io.StringIO()
    write_field_block(buf, [("f", np.arange(20, dtype=float))], 20)
    body = buf.getvalue().split('format="ascii">\n', 1)[1].split("</DataArray>", 1)[0]

    assert body.split() == [str(i) for i in range(20)]
    assert len(body.strip().splitlines()) > 1


def test_point_block_one_line_per_column_row():
    ext = compute_extents(1, 2, 1)
    n = ext.npoints
    X = np.arange(n, dtype=float)
    buf = io.StringIO()
    write_point_block(buf, X, X, X, ext)
    lines = buf.getvalue().splitlines()[2:-2]

    assert len(lines) == ext.pr * ext.pc
    assert all(len(line.split()) == 3 * ext.pl for line in lines)


# ──────────────────────────────────────────────────────────────
# Whole documents
# ──────────────────────────────────────────────────────────────

def test_document_structure_and_extents():
    n = 3 * 4 * 2
    X = np.linspace(0.0, 1.0, n)
    text = export_to_text(X, X, X, {"rho": X}, 2, 3, 1)
    doc = ET.fromstring(text)

    assert doc.tag == "VTKFile"
    assert doc.get("type") == "StructuredGrid"
    assert doc.find("StructuredGrid").get("WholeExtent") == "0 2 0 3 0 1"
    assert doc.find("StructuredGrid/Piece").get("Extent") == "0 2 0 3 0 1"
    assert len(point_triples(doc)) == n


def test_traversal_order_on_2x2x2_points():
    flat = np.arange(8, dtype=float)
    doc = ET.fromstring(export_to_text(flat, flat, flat, [], 1, 1, 1))

    assert point_triples(doc) == [(float(i), float(i), float(i)) for i in range(8)]


def test_traversal_reads_all_axes_at_same_index():
    X = np.arange(8, dtype=float)
    Y = X + 100.0
    Z = X + 200.0
    doc = ET.fromstring(export_to_text(X, Y, Z, [], 1, 1, 1))

    assert point_triples(doc)[5] == (5.0, 105.0, 205.0)


def test_flat_grid_ignores_z_buffer():
    X = np.arange(4, dtype=float)
    Z = np.full(4, 7.5)
    doc = ET.fromstring(export_to_text(X, X, Z, [], 1, 1, 0))

    assert [t[2] for t in point_triples(doc)] == [0.0] * 4


def test_flat_grid_without_z():
    X = np.arange(6, dtype=float)
    doc = ET.fromstring(export_to_text(X, -X, None, [], 2, 1, 0))
    triples = point_triples(doc)

    assert len(triples) == 6
    assert triples[-1] == (5.0, -5.0, 0.0)


def test_pressure_scenario():
    X = [0.0, 1.0, 0.0, 1.0]
    Y = [0.0, 0.0, 1.0, 1.0]
    text = export_to_text(X, Y, None, {"pressure": [1.0, 2.0, 3.0, 4.0]}, 1, 1, 0)
    doc = ET.fromstring(text)

    assert field_arrays(doc) == [("pressure", ["1", "2", "3", "4"])]
    assert "1 2 3 4" in text
    assert point_triples(doc) == [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (1.0, 1.0, 0.0)]


def test_empty_field_dictionary_still_writes_points():
    X = np.arange(8, dtype=float)
    doc = ET.fromstring(export_to_text(X, X, X, {}, 1, 1, 1))

    point_data = doc.find("StructuredGrid/Piece/PointData")
    assert point_data is not None
    assert point_data.get("Scalars") == ""
    assert field_arrays(doc) == []
    assert len(point_triples(doc)) == 8


def test_every_field_written_once_in_order():
    n = 2 * 3
    fields = {name: np.arange(n, dtype=float) * k for k, name in enumerate(["c", "a", "b"], start=1)}
    doc = ET.fromstring(export_to_text(np.zeros(n), np.zeros(n), None, fields, 1, 2, 0))
    arrays = field_arrays(doc)

    assert doc.find("StructuredGrid/Piece/PointData").get("Scalars") == "a,b,c,"
    assert [name for name, _ in arrays] == ["a", "b", "c"]
    for name, tokens in arrays:
        assert [float(t) for t in tokens] == list(fields[name])


def test_values_round_trip_to_15_digits():
    values = np.array([0.1, 1.0 / 3.0, -np.pi * 1e10, 6.02214076e23, 1e-300, 2.0 ** 0.5])
    doc = ET.fromstring(export_to_text(values, values, None, {"v": values}, 5, 0, 0))

    _, tokens = field_arrays(doc)[0]
    for token, original in zip(tokens, values):
        assert float(token) == pytest.approx(original, rel=1e-15)

    for (x, y, z), original in zip(point_triples(doc), values):
        assert x == pytest.approx(original, rel=1e-15)
        assert y == pytest.approx(original, rel=1e-15)


def test_field_names_are_escaped():
    text = export_to_text([0.0], [0.0], None, {'a"b<c': [1.0]}, 0, 0, 0)
    doc = ET.fromstring(text)

    assert field_arrays(doc)[0][0] == 'a"b<c'
    assert "&quot;" in text
    assert len(point_triples(doc)) == 1


def test_longer_buffers_are_truncated_to_grid():
    X = np.arange(100, dtype=float)
    doc = ET.fromstring(export_to_text(X, X, None, {"f": X}, 1, 1, 0))

    assert len(field_arrays(doc)[0][1]) == 4
    assert len(point_triples(doc)) == 4


# ──────────────────────────────────────────────────────────────
# Errors and sinks
# ──────────────────────────────────────────────────────────────

def test_short_coordinate_buffer_is_rejected(tmp_path):
    out = tmp_path / "short.vts"
    with pytest.raises(PreconditionViolation):
        export(out, np.zeros(3), np.zeros(4), None, {}, 1, 1, 0)
    assert not out.exists()


def test_short_field_buffer_is_rejected(tmp_path):
    out = tmp_path / "short.vts"
    with pytest.raises(PreconditionViolation, match="Field 'rho'"):
        export(out, np.zeros(4), np.zeros(4), None, {"rho": [1.0]}, 1, 1, 0)
    assert not out.exists()


def test_missing_z_on_3d_grid_is_rejected():
    with pytest.raises(PreconditionViolation):
        export(io.StringIO(), np.zeros(8), np.zeros(8), None, {}, 1, 1, 1)


def test_precondition_violation_is_value_error():
    assert issubclass(PreconditionViolation, ValueError)
    assert issubclass(PreconditionViolation, GridExportError)


def test_unwritable_path_raises_io_failure(tmp_path):
    out = tmp_path / "missing_dir" / "grid.vts"
    with pytest.raises(IOFailure) as info:
        export(out, np.zeros(1), np.zeros(1), None, {}, 0, 0, 0)

    assert isinstance(info.value, OSError)
    assert isinstance(info.value.__cause__, OSError)


def test_failing_stream_raises_io_failure():
    class BrokenStream(io.StringIO):
        def write(self, s):
            raise OSError("disk full")

    with pytest.raises(IOFailure, match="disk full"):
        export(BrokenStream(), np.zeros(1), np.zeros(1), None, {}, 0, 0, 0)


def test_stream_sink_is_left_open():
    buf = io.StringIO()
    export(buf, np.zeros(1), np.zeros(1), None, {}, 0, 0, 0)

    assert not buf.closed
    assert buf.getvalue().endswith("</VTKFile>\n")


def test_path_sink_writes_ascii_file(tmp_path):
    out = tmp_path / "grid.vts"
    export(str(out), np.zeros(4), np.ones(4), None, {"température": np.ones(4)}, 1, 1, 0)

    raw = out.read_bytes()
    raw.decode("ascii")
    doc = ET.fromstring(raw)
    assert field_arrays(doc)[0][0] == "température"


def test_exporter_precision_is_configurable():
    buf = io.StringIO()
    GridExporter(precision=3).export(buf, [1.0 / 3.0], [0.0], None, {"f": [2.0 / 3.0]}, 0, 0, 0)
    doc = ET.fromstring(buf.getvalue())

    assert field_arrays(doc)[0][1] == ["0.667"]
    assert point_triples(doc)[0][0] == pytest.approx(0.333)


def test_exporter_rejects_bad_precision():
    with pytest.raises(ValueError):
        GridExporter(precision=0)


def test_closed_stream_raises_io_failure():
    buf = io.StringIO()
    buf.close()

    with pytest.raises(IOFailure) as info:
        export(buf, np.zeros(1), np.zeros(1), None, {}, 0, 0, 0)

    assert isinstance(info.value.__cause__, ValueError)


def test_ascii_stream_with_non_ascii_name_raises_io_failure():
    stream = io.TextIOWrapper(io.BytesIO(), encoding="ascii")

    with pytest.raises(IOFailure) as info:
        export(stream, np.zeros(1), np.zeros(1), None, {"température": [1.0]}, 0, 0, 0)

    assert isinstance(info.value.__cause__, UnicodeEncodeError)


@pytest.mark.parametrize("precision", [3.5, "16", True])
def test_exporter_rejects_non_integer_precision(precision):
    with pytest.raises(ValueError):
        GridExporter(precision=precision)


def test_field_name_with_comma_is_rejected_before_writing(tmp_path):
    out = tmp_path / "comma.vts"
    with pytest.raises(PreconditionViolation, match="comma"):
        export(out, np.zeros(1), np.zeros(1), None, {"u,v": [1.0]}, 0, 0, 0)
    assert not out.exists()

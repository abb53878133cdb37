import io
import struct

import numpy as np
import pytest

from meshc.errors import ChunkFormatError
from meshc.format.chunks import ChunkReader, ChunkTag, ChunkWriter, read_mesh
from meshc.geometry.bounds import calc_bounds
from meshc.geometry.layout import Attrib, derive_layout
from meshc.settings import CompilerSettings
from meshc.types import Primitive

POINTS = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], np.float32)


@pytest.fixture
def batch():
    layout = derive_layout(True, True, CompilerSettings())
    vertices = layout.allocate(3)
    layout.pack(vertices, Attrib.POSITION, POINTS)
    layout.pack(vertices, Attrib.TEXCOORD0, POINTS[:, :2])
    layout.pack(vertices, Attrib.NORMAL, np.tile([0, 0, 1], (3, 1)))
    bounds = calc_bounds(POINTS)
    prim = Primitive("tri", 0, 3, 0, 3, bounds)
    return layout, vertices, bounds, prim


def _write(batch, compressed=None):
    layout, vertices, bounds, prim = batch
    out = io.BytesIO()
    writer = ChunkWriter(out)
    writer.write_vertex_buffer(layout, vertices, bounds)
    if compressed is None:
        writer.write_index_buffer(np.array([0, 1, 2], np.uint16))
    else:
        writer.write_compressed_index_buffer(3, compressed)
    writer.write_primitives("stone", [prim])
    return out.getvalue()


def test_tag_bytes():
    assert ChunkTag.VERTEX_BUFFER.value == b"VB \x01"
    assert ChunkTag.INDEX_BUFFER.value == b"IB \x00"
    assert ChunkTag.INDEX_BUFFER_COMPRESSED.value == b"IBC\x00"
    assert ChunkTag.PRIMITIVES.value == b"PRI\x00"


def test_vertex_buffer_layout_on_the_wire(batch):
    layout, vertices, _, _ = batch
    data = _write(batch)

    assert data[:4] == b"VB \x01"
    # Tag, sphere (16), aabb (24), obb (64), then the layout header.
    num_attrs, stride = struct.unpack_from("<BH", data, 4 + 104)
    assert (num_attrs, stride) == (3, layout.stride)

    count_at = 4 + 104 + 3 + num_attrs * 9 + 4
    assert struct.unpack_from("<H", data, count_at)[0] == 3
    assert data[count_at + 2 : count_at + 2 + 3 * stride] == vertices.tobytes()


def test_index_buffer_on_the_wire():
    out = io.BytesIO()
    ChunkWriter(out).write_index_buffer(np.array([0, 2, 1], np.uint16))

    assert out.getvalue() == b"IB \x00" + struct.pack("<I3H", 3, 0, 2, 1)


def test_read_back_batch(batch):
    layout, vertices, bounds, _ = batch

    (chunk,) = read_mesh(_write(batch))

    assert chunk.layout == layout
    assert chunk.vertices.tobytes() == vertices.tobytes()
    assert chunk.indices.tolist() == [0, 1, 2]
    assert not chunk.compressed
    assert chunk.material == "stone"
    (prim,) = chunk.primitives
    assert (prim.name, prim.start_index, prim.num_indices) == ("tri", 0, 3)
    assert prim.bounds.aabb == bounds.aabb
    np.testing.assert_allclose(prim.bounds.obb.mtx, bounds.obb.mtx)


def test_read_compressed_batch(batch):
    from meshc.codec.index_codec import encode_indices

    data, _ = encode_indices(np.array([0, 1, 2], np.uint16), 3)
    (chunk,) = read_mesh(_write(batch, compressed=data))

    assert chunk.compressed
    assert chunk.indices.tolist() == [0, 1, 2]


def test_primitive_without_bounds_is_rejected():
    with pytest.raises(ValueError, match="no bounds"):
        ChunkWriter(io.BytesIO()).write_primitives("m", [Primitive("p", 0, 3, 0, 3)])


def test_unknown_tag_raises():
    with pytest.raises(ChunkFormatError, match="Unknown chunk tag"):
        read_mesh(b"XYZ\x00")


def test_index_chunk_before_vertex_buffer_raises():
    with pytest.raises(ChunkFormatError, match="before any vertex buffer"):
        read_mesh(b"IB \x00" + struct.pack("<I", 0))


def test_truncated_data_raises(batch):
    data = _write(batch)

    with pytest.raises(ChunkFormatError, match="Unexpected end"):
        read_mesh(data[:-5])


def test_reader_string():
    reader = ChunkReader(struct.pack("<H", 3) + b"abc")

    assert reader.read_string() == "abc"
    assert reader.at_end()

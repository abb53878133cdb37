import numpy as np
import pytest

from meshc.codec.bitstream import BitReader, BitWriter
from meshc.codec.index_codec import (
    compress_index_buffer,
    compression_ratio,
    decode_indices,
    encode_indices,
    remap_vertices,
)
from meshc.errors import ChunkFormatError


def _check_round_trip(indices, num_vertices):
    data, remap = encode_indices(indices, num_vertices)
    decoded = decode_indices(data, len(indices))

    assert sorted(remap.tolist()) == list(range(num_vertices))
    np.testing.assert_array_equal(decoded, remap[np.asarray(indices, np.int64)])
    return data, remap, decoded


def test_bitstream_round_trip():
    writer = BitWriter()
    values = [(1, 1), (5, 3), (0, 2), (1023, 10), (65535, 16), (3, 2)]
    for value, bits in values:
        writer.write(value, bits)
    reader = BitReader(writer.finish())

    assert [reader.read(bits) for _, bits in values] == [v for v, _ in values]


def test_bitwriter_rejects_overflow():
    with pytest.raises(ValueError):
        BitWriter().write(4, 2)


def test_grid_round_trip(grid_indices):
    indices, num_vertices = grid_indices(n=12)

    data, _, _ = _check_round_trip(indices, num_vertices)

    assert len(data) < len(indices) * 2


def test_shuffled_soup_round_trip():
    # Random connectivity exercises the explicit-index path.
    rng = np.random.default_rng(5)
    indices = rng.integers(0, 300, size=3 * 400).astype(np.uint16)

    _check_round_trip(indices, 300)


def test_degenerate_triangles_round_trip():
    indices = np.array([0, 0, 1, 1, 2, 2, 2, 1, 0, 3, 3, 3], np.uint16)

    _check_round_trip(indices, 4)


def test_unreferenced_vertices_fill_remaining_ids():
    indices = np.array([4, 2, 3], np.uint16)

    _, remap = encode_indices(indices, 6)

    # Referenced by first appearance, then the rest in ascending order.
    assert remap.tolist() == [3, 4, 1, 2, 0, 5]


def test_remap_preserves_vertex_attributes(grid_indices):
    indices, num_vertices = grid_indices(n=6, shuffle_seed=2)
    vertices = np.zeros(num_vertices, dtype=[("position", "<f4", (3,))])
    vertices["position"] = np.arange(num_vertices * 3, dtype=np.float32).reshape(-1, 3)
    original = vertices.copy()

    data, remap = compress_index_buffer(indices, vertices)
    decoded = decode_indices(data, len(indices))

    np.testing.assert_array_equal(
        vertices["position"][decoded], original["position"][indices]
    )


def test_remap_vertices_in_place():
    vertices = np.array([10, 20, 30])
    remap_vertices(vertices, np.array([2, 0, 1]))

    assert vertices.tolist() == [20, 30, 10]


def test_compress_reports_ratio(grid_indices, capsys):
    indices, num_vertices = grid_indices(n=4)
    compress_index_buffer(indices, np.zeros(num_vertices, np.float32))

    assert "[codec] uncompressed:" in capsys.readouterr().out


def test_compression_ratio():
    assert compression_ratio(100, 50) == 75.0
    assert compression_ratio(0, 0) == 0.0


def test_truncated_stream_raises(grid_indices):
    indices, num_vertices = grid_indices(n=4)
    data, _ = encode_indices(indices, num_vertices)

    with pytest.raises(ChunkFormatError):
        decode_indices(data[: len(data) // 4], len(indices))


def test_index_out_of_range_raises():
    with pytest.raises(ValueError):
        encode_indices(np.array([0, 1, 5], np.uint16), 3)

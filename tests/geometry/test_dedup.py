import pytest

from meshc.errors import IntegrityError
from meshc.geometry.dedup import (
    MAX_ATTRIBUTE_INDEX,
    VertexTable,
    pack_vertex_key,
    unpack_vertex_key,
)
from meshc.types import UNASSIGNED


def test_key_fields_are_bit_packed():
    key = pack_vertex_key(1, 2, 3, 1)

    assert key == 1 | (2 << 20) | (3 << 40) | (1 << 60)
    assert unpack_vertex_key(key) == (1, 2, 3, 1)


def test_absent_attributes_pack_as_all_ones():
    key = pack_vertex_key(7, -1, -1)

    assert (key >> 20) & 0xFFFFF == 0xFFFFF
    assert unpack_vertex_key(key) == (7, -1, -1, 0)


def test_out_of_range_index_is_rejected():
    pack_vertex_key(MAX_ATTRIBUTE_INDEX, 0, 0)
    with pytest.raises(ValueError):
        pack_vertex_key(MAX_ATTRIBUTE_INDEX + 1, 0, 0)
    with pytest.raises(ValueError):
        pack_vertex_key(0, 0, 0, tag=16)


def test_insert_deduplicates():
    table = VertexTable()
    k1 = table.insert(0, 1, 2)
    k2 = table.insert(0, 1, 2)
    k3 = table.insert(0, 1, 2, tag=1)

    assert k1 == k2
    assert k1 != k3
    assert len(table) == 2
    assert table[k1].emit_index == UNASSIGNED


def test_collision_with_different_indices_is_fatal():
    table = VertexTable()
    key = table.insert(3, 4, 5)

    # Simulate a second tuple landing on the same packed key.
    table[key].normal = 6

    with pytest.raises(IntegrityError, match="Hash collision"):
        table.insert(3, 4, 5)


def test_reset_emission():
    table = VertexTable()
    key = table.insert(0, -1, -1)
    table[key].emit_index = 12

    table.reset_emission()

    assert table[key].emit_index == UNASSIGNED


def test_mixed_defaults_fill_absent_with_first_element():
    table = VertexTable()
    a = table.insert(0, -1, -1)
    b = table.insert(1, 3, -1)

    has_texcoord, has_normal = table.apply_mixed_defaults()

    assert (has_texcoord, has_normal) == (True, False)
    assert table[a].texcoord == 0
    assert table[b].texcoord == 3
    assert table[a].normal == -1

# meshc/codec/index_codec.py
"""
Lossless triangle-list compression.

Each triangle is coded against two small FIFOs shared by encoder and
decoder: recent directed edges (stored reversed, so a neighbour with
consistent winding finds its shared edge) and recent vertices. Vertices
are renumbered in order of first appearance, which makes "next new
vertex" free to encode; the returned remap tells the caller how to
reorder the companion vertex buffer.

Triangle codes (2 bits):

    EDGE_NEW     edge hit, third vertex is new
    EDGE_CACHED  edge hit, third vertex in the vertex FIFO
    EDGE_FREE    edge hit, third vertex written out in full
    NO_EDGE      three vertex codes follow

Edge codes carry the FIFO slot and a 2-bit rotation so the exact corner
order is restored. Vertex codes (2 bits) are NEW, CACHED (+ slot) or
FREE (+ 16-bit index).
"""
from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional, Tuple

import numpy as np

from meshc.codec.bitstream import BitReader, BitWriter
from meshc.errors import ChunkFormatError

FIFO_SIZE = 32
FIFO_BITS = 5
INDEX_BITS = 16

TRI_EDGE_NEW = 0
TRI_EDGE_CACHED = 1
TRI_EDGE_FREE = 2
TRI_NO_EDGE = 3

VTX_NEW = 0
VTX_CACHED = 1
VTX_FREE = 2

Edge = Tuple[int, int]


class _Fifos:
    def __init__(self) -> None:
        self.edges: Deque[Edge] = deque(maxlen=FIFO_SIZE)
        self.vertices: Deque[int] = deque(maxlen=FIFO_SIZE)

    def find_edge(self, edge: Edge) -> int:
        try:
            return self.edges.index(edge)
        except ValueError:
            return -1

    def find_vertex(self, v: int) -> int:
        try:
            return self.vertices.index(v)
        except ValueError:
            return -1

    def push(self, a: int, b: int, c: int) -> None:
        self.edges.appendleft((b, a))
        self.edges.appendleft((c, b))
        self.edges.appendleft((a, c))
        for v in (a, b, c):
            if v not in self.vertices:
                self.vertices.appendleft(v)


class _Encoder:
    def __init__(self, num_vertices: int) -> None:
        self.remap = np.full(num_vertices, -1, dtype=np.int64)
        self.next_id = 0
        self.fifos = _Fifos()
        self.out = BitWriter()

    def mapped(self, v: int) -> Optional[int]:
        m = int(self.remap[v])
        return None if m < 0 else m

    def write_vertex(self, v: int, with_code: bool) -> int:
        """Code one vertex; returns its new id. Edge triangles omit the 2-bit code."""
        m = self.mapped(v)
        if m is None:
            m = self.next_id
            self.remap[v] = m
            self.next_id += 1
            if with_code:
                self.out.write(VTX_NEW, 2)
            return m

        slot = self.fifos.find_vertex(m)
        if slot >= 0:
            if with_code:
                self.out.write(VTX_CACHED, 2)
            self.out.write(slot, FIFO_BITS)
        else:
            if with_code:
                self.out.write(VTX_FREE, 2)
            self.out.write(m, INDEX_BITS)
        return m

    def third_code(self, v: int) -> int:
        m = self.mapped(v)
        if m is None:
            return TRI_EDGE_NEW
        if self.fifos.find_vertex(m) >= 0:
            return TRI_EDGE_CACHED
        return TRI_EDGE_FREE

    def encode_triangle(self, tri: Tuple[int, int, int]) -> None:
        mapped = [self.mapped(v) for v in tri]

        for rot in range(3):
            a, b = mapped[rot], mapped[(rot + 1) % 3]
            if a is None or b is None:
                continue
            slot = self.fifos.find_edge((a, b))
            if slot < 0:
                continue

            third = tri[(rot + 2) % 3]
            self.out.write(self.third_code(third), 2)
            self.out.write(slot, FIFO_BITS)
            self.out.write(rot, 2)
            c = self.write_vertex(third, with_code=False)

            rotated = [a, b, c]
            new_tri = [0, 0, 0]
            for k in range(3):
                new_tri[(rot + k) % 3] = rotated[k]
            self.fifos.push(*new_tri)
            return

        self.out.write(TRI_NO_EDGE, 2)
        new_tri = [self.write_vertex(v, with_code=True) for v in tri]
        self.fifos.push(*new_tri)


def encode_indices(
    indices: np.ndarray, num_vertices: int
) -> Tuple[bytes, np.ndarray]:
    """
    Compress a triangle list.

    Returns the bitstream and a vertex remap (old index -> new index).
    The remap is a permutation of range(num_vertices): referenced vertices
    are numbered by first appearance, unreferenced ones take the remaining
    ids in ascending order.
    """
    tris = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    if len(tris) and int(tris.max()) >= num_vertices:
        raise ValueError(
            f"index {int(tris.max())} out of range for {num_vertices} vertices"
        )

    encoder = _Encoder(num_vertices)
    for a, b, c in tris.tolist():
        encoder.encode_triangle((a, b, c))

    remap = encoder.remap
    unused = np.nonzero(remap < 0)[0]
    remap[unused] = np.arange(encoder.next_id, encoder.next_id + len(unused))

    return encoder.out.finish(), remap


def decode_indices(data: bytes, num_indices: int) -> np.ndarray:
    """Inverse of encode_indices; indices come back in remapped order."""
    if num_indices % 3:
        raise ChunkFormatError(f"index count {num_indices} is not a multiple of 3")

    reader = BitReader(data)
    fifos = _Fifos()
    next_id = 0
    out: List[int] = []

    def read_vertex(code: int) -> int:
        nonlocal next_id
        if code == VTX_NEW:
            v = next_id
            next_id += 1
            return v
        if code == VTX_CACHED:
            slot = reader.read(FIFO_BITS)
            if slot >= len(fifos.vertices):
                raise ChunkFormatError(f"vertex FIFO slot {slot} is empty")
            return fifos.vertices[slot]
        if code == VTX_FREE:
            return reader.read(INDEX_BITS)
        raise ChunkFormatError(f"invalid vertex code {code}")

    for _ in range(num_indices // 3):
        code = reader.read(2)
        if code == TRI_NO_EDGE:
            tri = [read_vertex(reader.read(2)) for _ in range(3)]
        else:
            slot = reader.read(FIFO_BITS)
            rot = reader.read(2)
            if slot >= len(fifos.edges) or rot > 2:
                raise ChunkFormatError("corrupt edge reference")
            a, b = fifos.edges[slot]
            # Triangle codes 0..2 line up with vertex codes NEW/CACHED/FREE.
            c = read_vertex(code)

            rotated = [a, b, c]
            tri = [0, 0, 0]
            for k in range(3):
                tri[(rot + k) % 3] = rotated[k]

        fifos.push(*tri)
        out.extend(tri)

    return np.asarray(out, dtype=np.uint16)


def remap_vertices(vertices: np.ndarray, remap: np.ndarray) -> None:
    """Move vertices[i] to vertices[remap[i]] in place."""
    reordered = np.empty_like(vertices)
    reordered[remap] = vertices
    vertices[:] = reordered


def compression_ratio(num_indices: int, compressed_size: int) -> float:
    """Percent saved against a raw u16 index buffer."""
    raw = num_indices * 2
    if raw == 0:
        return 0.0
    return 100.0 - compressed_size / raw * 100.0


def compress_index_buffer(
    indices: np.ndarray, vertices: np.ndarray
) -> Tuple[bytes, np.ndarray]:
    """
    Encode a batch and reorder its vertex buffer to match.

    Returns (bitstream, remap).
    """
    data, remap = encode_indices(indices, len(vertices))
    remap_vertices(vertices, remap)

    print(
        f"[codec] uncompressed: {len(indices) * 2:10d}, "
        f"compressed: {len(data):10d}, "
        f"ratio: {compression_ratio(len(indices), len(data)):0.2f}%"
    )
    return data, remap

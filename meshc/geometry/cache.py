# meshc/geometry/cache.py
from __future__ import annotations

from collections import deque
from typing import List

import numpy as np

# Forsyth, "Linear-Speed Vertex Cache Optimisation" (2006) tuning values.
CACHE_DECAY_POWER = 1.5
LAST_TRI_SCORE = 0.75
VALENCE_BOOST_SCALE = 2.0
VALENCE_BOOST_POWER = 0.5


def _vertex_score(cache_pos: int, remaining: int, cache_size: int) -> float:
    if remaining == 0:
        return -1.0

    score = 0.0
    if cache_pos >= 0:
        if cache_pos < 3:
            # Vertices of the triangle just emitted.
            score = LAST_TRI_SCORE
        else:
            scaler = 1.0 / (cache_size - 3)
            score = (1.0 - (cache_pos - 3) * scaler) ** CACHE_DECAY_POWER

    score += VALENCE_BOOST_SCALE * remaining ** -VALENCE_BOOST_POWER
    return score


def optimize_triangle_order(
    indices: np.ndarray, num_vertices: int, cache_size: int = 32
) -> np.ndarray:
    """
    Reorder whole triangles for post-transform cache reuse.

    Corner order inside each triangle is kept, so winding is unchanged.
    Ties go to the lowest triangle index, making the result deterministic.
    """
    tris = np.asarray(indices).reshape(-1, 3)
    num_tris = len(tris)
    if num_tris <= 1:
        return np.asarray(indices).copy()

    tri_list = [tuple(int(v) for v in t) for t in tris]
    num_vertices = max(num_vertices, max(max(t) for t in tri_list) + 1)

    vertex_tris: List[List[int]] = [[] for _ in range(num_vertices)]
    for t, (a, b, c) in enumerate(tri_list):
        vertex_tris[a].append(t)
        vertex_tris[b].append(t)
        vertex_tris[c].append(t)

    remaining = [len(ts) for ts in vertex_tris]
    cache_pos = [-1] * num_vertices
    vertex_score = [
        _vertex_score(-1, remaining[v], cache_size) for v in range(num_vertices)
    ]
    tri_score = [sum(vertex_score[v] for v in t) for t in tri_list]
    tri_added = [False] * num_tris

    cache: List[int] = []
    order: List[int] = []

    best = max(range(num_tris), key=lambda t: (tri_score[t], -t))
    next_unadded = 0

    while True:
        order.append(best)
        tri_added[best] = True
        tri = tri_list[best]

        for v in tri:
            vertex_tris[v].remove(best)
            remaining[v] -= 1

        # Move this triangle's vertices to the front of the LRU cache.
        new_cache = list(dict.fromkeys(tri))
        new_cache += [v for v in cache if v not in new_cache]
        evicted = new_cache[cache_size:]
        cache = new_cache[:cache_size]

        for v in evicted:
            cache_pos[v] = -1
        for pos, v in enumerate(cache):
            cache_pos[v] = pos

        touched = cache + evicted
        for v in touched:
            vertex_score[v] = _vertex_score(cache_pos[v], remaining[v], cache_size)
        for v in touched:
            for t in vertex_tris[v]:
                a, b, c = tri_list[t]
                tri_score[t] = vertex_score[a] + vertex_score[b] + vertex_score[c]

        if len(order) == num_tris:
            break

        best = -1
        best_score = -1.0
        for v in cache:
            for t in vertex_tris[v]:
                score = tri_score[t]
                if score > best_score or (score == best_score and t < best):
                    best, best_score = t, score

        if best < 0:
            # Cache holds nothing useful: take the first untouched triangle.
            while tri_added[next_unadded]:
                next_unadded += 1
            best = next_unadded

    return tris[order].reshape(-1).astype(np.asarray(indices).dtype)


def acmr(indices: np.ndarray, cache_size: int = 32) -> float:
    """Average cache misses per triangle for a FIFO cache of cache_size."""
    flat = np.asarray(indices).reshape(-1)
    if len(flat) < 3:
        return 0.0

    fifo: deque = deque(maxlen=cache_size)
    misses = 0
    for v in flat.tolist():
        if v not in fifo:
            misses += 1
            fifo.append(v)
    return misses / (len(flat) // 3)

from meshc.geometry.bounds import calc_aabb, calc_bounding_sphere, calc_bounds, calc_obb
from meshc.geometry.cache import acmr, optimize_triangle_order
from meshc.geometry.dedup import VertexTable, pack_vertex_key, unpack_vertex_key
from meshc.geometry.layout import Attrib, AttribType, VertexLayout, derive_layout
from meshc.geometry.tangents import calc_tangents

__all__ = [
    "Attrib",
    "AttribType",
    "VertexLayout",
    "VertexTable",
    "acmr",
    "calc_aabb",
    "calc_bounding_sphere",
    "calc_bounds",
    "calc_obb",
    "calc_tangents",
    "derive_layout",
    "optimize_triangle_order",
    "pack_vertex_key",
    "unpack_vertex_key",
]

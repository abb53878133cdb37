from meshc.codec.index_codec import (
    compress_index_buffer,
    decode_indices,
    encode_indices,
    remap_vertices,
)

__all__ = [
    "compress_index_buffer",
    "decode_indices",
    "encode_indices",
    "remap_vertices",
]

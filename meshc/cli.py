# meshc/cli.py
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from meshc import __version__
from meshc.compiler import compile_file
from meshc.errors import MeshError
from meshc.settings import CompilerSettings, PackMode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meshc",
        description="Compile a Wavefront OBJ file into a chunked binary GPU mesh.",
    )
    parser.add_argument("-v", "--version", action="version",
                        version=f"meshc {__version__}")
    parser.add_argument("-f", dest="input", required=True,
                        help="Input file path (*.obj)")
    parser.add_argument("-o", dest="output", required=True,
                        help="Output file path")
    parser.add_argument("-s", "--scale", type=float, default=1.0,
                        help="Scale factor")
    parser.add_argument("--ccw", action="store_true",
                        help="Counter-clockwise winding order")
    parser.add_argument("--flipv", action="store_true",
                        help="Flip texture coordinate V")
    parser.add_argument("--obb", type=int, default=17,
                        help="Number of steps for the oriented bounding box "
                             "(1-90, default 17). More steps, tighter box, slower.")
    parser.add_argument("--packnormal", type=int, choices=[0, 1], default=0,
                        help="Normal packing: 0 unpacked 12 bytes, 1 packed 4 bytes")
    parser.add_argument("--packuv", type=int, choices=[0, 1], default=0,
                        help="Texcoord packing: 0 unpacked 8 bytes, 1 packed 4 bytes")
    parser.add_argument("--tangent", action="store_true",
                        help="Calculate tangent vectors (packed like normals)")
    parser.add_argument("--barycentric", action="store_true",
                        help="Add barycentric vertex attribute (color1)")
    parser.add_argument("-c", "--compress", action="store_true",
                        help="Compress indices")
    return parser


def settings_from_args(args: argparse.Namespace) -> CompilerSettings:
    return CompilerSettings(
        scale=args.scale,
        ccw=args.ccw,
        flip_v=args.flipv,
        obb_steps=args.obb,
        pack_normal=PackMode(args.packnormal),
        pack_uv=PackMode(args.packuv),
        tangents=args.tangent,
        barycentric=args.barycentric,
        compress=args.compress,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)

    src = Path(args.input)
    dst = Path(args.output)

    if not src.is_file():
        print(f"Unable to open input file '{src}'.", file=sys.stderr)
        return 1

    try:
        stats = compile_file(src, dst, settings)
    except MeshError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Unable to open file: {e}", file=sys.stderr)
        return 1

    print(f"[meshc] {src} -> {dst}")
    print(stats.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())

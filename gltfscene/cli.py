from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .errors import Error, GltfError
from .glb import GltfType
from .parser import GltfDataBuffer, Parser
from .tools import BufferCache, compute_scene_bounds, validate_asset_indices
from .types import Options

FLAG_ARGUMENTS: tuple[tuple[str, Options, str], ...] = (
    ("--skip-asset-check", Options.SKIP_ASSET_FIELD_VALIDATION, "Do not require a valid asset.version"),
    ("--allow-double", Options.ALLOW_DOUBLE_PRECISION_ACCESSORS, "Accept double-precision accessors"),
    ("--load-glb-buffers", Options.LOAD_CONTAINER_EMBEDDED_BUFFERS, "Copy the GLB binary chunk into buffer 0"),
    ("--load-buffers", Options.LOAD_EXTERNAL_FILE_BUFFERS, "Read external buffer files while parsing"),
    ("--load-images", Options.LOAD_EXTERNAL_FILE_IMAGES, "Read external image files while parsing"),
    ("--enable-basisu", Options.ENABLE_BASIS_UNIVERSAL_TEXTURE_EXTENSION, "Enable KHR_texture_basisu"),
    ("--enable-dds", Options.ENABLE_DDS_TEXTURE_EXTENSION, "Enable MSFT_texture_dds"),
    ("--portable", Options.FORCE_PORTABLE_DECODING, "Use the portable JSON and base64 decoders"),
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Parse and validate a glTF or GLB file and print a summary.")
    parser.add_argument("input", type=Path, help="Input .gltf or .glb file")
    for flag, _, help_text in FLAG_ARGUMENTS:
        parser.add_argument(flag, action="store_true", help=help_text)
    parser.add_argument("--validate", action="store_true", help="Also check that every index reference resolves")
    parser.add_argument("--bounds", action="store_true", help="Compute world-space bounds of the default scene")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON (indent=2)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def options_from_args(args: argparse.Namespace) -> Options:
    options = Options.NONE
    for flag, option, _ in FLAG_ARGUMENTS:
        if getattr(args, flag.lstrip("-").replace("-", "_")):
            options |= option
    return options


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    input_path: Path = args.input
    if not input_path.is_file():
        raise GltfError(Error.INVALID_PATH, f"Input not found: {input_path}")

    data = GltfDataBuffer.from_path(input_path)
    asset = Parser().load(data, input_path.parent, options_from_args(args))

    summary: dict[str, object] = {
        "file": str(input_path),
        "binary": data.file_type is GltfType.GLB,
        "version": asset.info.version if asset.info else None,
        "generator": asset.info.generator if asset.info else None,
        "counts": asset.counts(),
        "defaultScene": asset.default_scene,
        "extensionsUsed": asset.extensions_used,
    }

    if args.validate:
        validate_asset_indices(asset)
        summary["valid"] = True

    if args.bounds and asset.scenes:
        aabb = compute_scene_bounds(asset, BufferCache(asset, container=data.data))
        summary["bounds"] = None if aabb.is_empty() else {"min": list(aabb.min_xyz), "max": list(aabb.max_xyz)}

    json.dump(summary, sys.stdout, ensure_ascii=False, indent=2 if args.pretty else None)
    sys.stdout.write("\n")
    return 0


def run() -> None:
    try:
        raise SystemExit(main())
    except GltfError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    run()

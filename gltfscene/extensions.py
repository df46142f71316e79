from __future__ import annotations

from typing import Any

from .errors import Error, GltfError
from .jsonutil import is_uint
from .types import Options

KHR_TEXTURE_BASISU = "KHR_texture_basisu"
MSFT_TEXTURE_DDS = "MSFT_texture_dds"

# Checked in this order; the first enabled extension present wins.
TEXTURE_SOURCE_EXTENSIONS: tuple[tuple[str, Options], ...] = (
    (KHR_TEXTURE_BASISU, Options.ENABLE_BASIS_UNIVERSAL_TEXTURE_EXTENSION),
    (MSFT_TEXTURE_DDS, Options.ENABLE_DDS_TEXTURE_EXTENSION),
)


def enabled_extensions(options: Options) -> set[str]:
    return {name for name, flag in TEXTURE_SOURCE_EXTENSIONS if options & flag}


def find_texture_source(extensions: dict[str, Any], options: Options, *, where: str = "texture") -> int | None:
    """Return the image index supplied by the first enabled texture extension.

    None means no enabled extension is present, which is not an error. An
    enabled extension that is present but carries no ``source`` index is.
    """
    for name, flag in TEXTURE_SOURCE_EXTENSIONS:
        if not options & flag or name not in extensions:
            continue
        extension = extensions[name]
        if not isinstance(extension, dict) or not is_uint(extension.get("source")):
            raise GltfError(Error.INVALID_GLTF, f"{where}.extensions.{name} must supply a source image index")
        return extension["source"]
    return None

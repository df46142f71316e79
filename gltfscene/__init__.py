from __future__ import annotations

from . import sources
from .errors import Error, GltfError, get_error_message
from .glb import GltfType, build_glb, determine_gltf_file_type, read_glb
from .parser import Gltf, GltfDataBuffer, LoadResult, Parser, load
from .sources import DataSource, MimeType
from .types import (
    TRS,
    Accessor,
    AccessorType,
    Asset,
    AssetInfo,
    Buffer,
    BufferTarget,
    BufferView,
    ComponentType,
    Image,
    Mesh,
    Node,
    Options,
    Primitive,
    PrimitiveType,
    Scene,
    Texture,
    Transform,
    TransformMatrix,
)

__version__ = "0.1.0"

__all__ = [
    "TRS",
    "Accessor",
    "AccessorType",
    "Asset",
    "AssetInfo",
    "Buffer",
    "BufferTarget",
    "BufferView",
    "ComponentType",
    "DataSource",
    "Error",
    "Gltf",
    "GltfDataBuffer",
    "GltfError",
    "GltfType",
    "Image",
    "LoadResult",
    "Mesh",
    "MimeType",
    "Node",
    "Options",
    "Parser",
    "Primitive",
    "PrimitiveType",
    "Scene",
    "Texture",
    "Transform",
    "TransformMatrix",
    "build_glb",
    "determine_gltf_file_type",
    "get_error_message",
    "load",
    "read_glb",
    "sources",
]

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Union

from . import sources
from .sources import DataSource, MimeType

__all__ = [
    "Accessor",
    "AccessorType",
    "Asset",
    "AssetInfo",
    "Buffer",
    "BufferTarget",
    "BufferView",
    "ComponentType",
    "DataSource",
    "Image",
    "Mesh",
    "MimeType",
    "Node",
    "Options",
    "Primitive",
    "PrimitiveType",
    "Scene",
    "Texture",
    "Transform",
    "TransformMatrix",
    "TRS",
    "sources",
]


class Options(enum.IntFlag):
    NONE = 0
    SKIP_ASSET_FIELD_VALIDATION = 1 << 0
    ALLOW_DOUBLE_PRECISION_ACCESSORS = 1 << 1
    LOAD_CONTAINER_EMBEDDED_BUFFERS = 1 << 2
    LOAD_EXTERNAL_FILE_BUFFERS = 1 << 3
    LOAD_EXTERNAL_FILE_IMAGES = 1 << 4
    ENABLE_BASIS_UNIVERSAL_TEXTURE_EXTENSION = 1 << 5
    ENABLE_DDS_TEXTURE_EXTENSION = 1 << 6
    FORCE_PORTABLE_DECODING = 1 << 7


class ComponentType(enum.IntEnum):
    INVALID = 0
    BYTE = 5120
    UNSIGNED_BYTE = 5121
    SHORT = 5122
    UNSIGNED_SHORT = 5123
    UNSIGNED_INT = 5125
    FLOAT = 5126
    DOUBLE = 5130

    @classmethod
    def from_code(cls, code: int) -> "ComponentType":
        # Unknown codes map to INVALID so consumers can reject them.
        try:
            return cls(code)
        except ValueError:
            return cls.INVALID

    @property
    def byte_size(self) -> int:
        return COMPONENT_TYPE_BYTE_SIZE[self]

    @property
    def struct_format(self) -> str:
        return COMPONENT_TYPE_STRUCT_FORMAT[self]


COMPONENT_TYPE_BYTE_SIZE: dict[ComponentType, int] = {
    ComponentType.INVALID: 0,
    ComponentType.BYTE: 1,
    ComponentType.UNSIGNED_BYTE: 1,
    ComponentType.SHORT: 2,
    ComponentType.UNSIGNED_SHORT: 2,
    ComponentType.UNSIGNED_INT: 4,
    ComponentType.FLOAT: 4,
    ComponentType.DOUBLE: 8,
}

COMPONENT_TYPE_STRUCT_FORMAT: dict[ComponentType, str] = {
    ComponentType.INVALID: "",
    ComponentType.BYTE: "b",
    ComponentType.UNSIGNED_BYTE: "B",
    ComponentType.SHORT: "h",
    ComponentType.UNSIGNED_SHORT: "H",
    ComponentType.UNSIGNED_INT: "I",
    ComponentType.FLOAT: "f",
    ComponentType.DOUBLE: "d",
}


class AccessorType(enum.Enum):
    INVALID = ""
    SCALAR = "SCALAR"
    VEC2 = "VEC2"
    VEC3 = "VEC3"
    VEC4 = "VEC4"
    MAT2 = "MAT2"
    MAT3 = "MAT3"
    MAT4 = "MAT4"

    @classmethod
    def from_string(cls, name: str) -> "AccessorType":
        if not name:
            return cls.INVALID
        try:
            return cls(name)
        except ValueError:
            return cls.INVALID

    @property
    def component_count(self) -> int:
        return ACCESSOR_TYPE_COMPONENT_COUNT[self]


ACCESSOR_TYPE_COMPONENT_COUNT: dict[AccessorType, int] = {
    AccessorType.INVALID: 0,
    AccessorType.SCALAR: 1,
    AccessorType.VEC2: 2,
    AccessorType.VEC3: 3,
    AccessorType.VEC4: 4,
    AccessorType.MAT2: 4,
    AccessorType.MAT3: 9,
    AccessorType.MAT4: 16,
}


class PrimitiveType(enum.IntEnum):
    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6


class BufferTarget(enum.IntEnum):
    ARRAY_BUFFER = 34962
    ELEMENT_ARRAY_BUFFER = 34963


@dataclass(frozen=True)
class Buffer:
    byte_length: int
    data: DataSource
    name: str | None = None


@dataclass(frozen=True)
class BufferView:
    buffer_index: int
    byte_length: int
    byte_offset: int = 0
    byte_stride: int | None = None
    target: BufferTarget | None = None
    name: str | None = None


@dataclass(frozen=True)
class Accessor:
    component_type: ComponentType
    type: AccessorType
    count: int
    buffer_view_index: int | None = None
    byte_offset: int = 0
    normalized: bool = False
    min: list[float] | None = None
    max: list[float] | None = None
    name: str | None = None

    @property
    def element_size(self) -> int:
        return self.component_type.byte_size * self.type.component_count


@dataclass(frozen=True)
class Image:
    data: DataSource
    name: str | None = None


@dataclass(frozen=True)
class Texture:
    # None only when an extensions object was present but supplied nothing.
    image_index: int | None
    fallback_image_index: int | None = None
    # None means the default sampler: repeat wrapping, automatic filtering.
    sampler_index: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class Primitive:
    attributes: dict[str, int]
    type: PrimitiveType = PrimitiveType.TRIANGLES
    indices_accessor: int | None = None
    material_index: int | None = None


@dataclass(frozen=True)
class Mesh:
    primitives: list[Primitive]
    name: str | None = None


@dataclass(frozen=True)
class TRS:
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    scale: tuple[float, float, float] = (1.0, 1.0, 1.0)

    def is_identity(self) -> bool:
        return self == TRS()


@dataclass(frozen=True)
class TransformMatrix:
    # Column-major, as stored in the document.
    values: tuple[float, ...]


Transform = Union[TransformMatrix, TRS]


@dataclass(frozen=True)
class Node:
    mesh_index: int | None = None
    children: list[int] = field(default_factory=list)
    transform: Transform = field(default_factory=TRS)
    name: str | None = None


@dataclass(frozen=True)
class Scene:
    node_indices: list[int] = field(default_factory=list)
    name: str | None = None


@dataclass(frozen=True)
class AssetInfo:
    version: str
    min_version: str | None = None
    generator: str | None = None
    copyright: str | None = None


@dataclass
class Asset:
    info: AssetInfo | None = None
    buffers: list[Buffer] = field(default_factory=list)
    buffer_views: list[BufferView] = field(default_factory=list)
    accessors: list[Accessor] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    textures: list[Texture] = field(default_factory=list)
    meshes: list[Mesh] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    scenes: list[Scene] = field(default_factory=list)
    default_scene: int | None = None
    extensions_used: list[str] = field(default_factory=list)
    extensions_required: list[str] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "buffers": len(self.buffers),
            "bufferViews": len(self.buffer_views),
            "accessors": len(self.accessors),
            "images": len(self.images),
            "textures": len(self.textures),
            "meshes": len(self.meshes),
            "nodes": len(self.nodes),
            "scenes": len(self.scenes),
        }

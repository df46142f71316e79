from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


class MimeType(enum.Enum):
    NONE = ""
    JPEG = "image/jpeg"
    PNG = "image/png"
    KTX2 = "image/ktx2"
    DDS = "image/vnd-ms.dds"
    GLTF_BUFFER = "application/gltf-buffer"
    OCTET_STREAM = "application/octet-stream"


@dataclass(frozen=True)
class Array:
    """Bytes owned by the asset: a decoded data URI, a loaded file or a copied GLB chunk."""

    bytes: bytes = field(repr=False)
    mime_type: MimeType = MimeType.NONE


@dataclass(frozen=True)
class FilePath:
    """A file relative to the document directory, not yet read.

    ``byte_length`` of None means "to the end of the file".
    """

    path: Path
    mime_type: MimeType = MimeType.NONE
    byte_offset: int = 0
    byte_length: int | None = None


@dataclass(frozen=True)
class ContainerChunk:
    """A byte range into the binary container the document was loaded from."""

    byte_offset: int
    byte_length: int
    mime_type: MimeType = MimeType.GLTF_BUFFER


@dataclass(frozen=True)
class BufferView:
    buffer_view_index: int
    mime_type: MimeType = MimeType.NONE


DataSource = Union[Array, FilePath, ContainerChunk, BufferView]

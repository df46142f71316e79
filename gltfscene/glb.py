from __future__ import annotations

import enum
import json
import logging
import re
import struct
from dataclasses import dataclass
from typing import Any

from .errors import Error, GltfError

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"
GLB_VERSION_SUPPORTED = 2
GLB_HEADER_SIZE = 12
GLB_CHUNK_HEADER_SIZE = 8

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"

# Optional UTF-8 BOM, then JSON insignificant whitespace.
JSON_LEADER = re.compile(rb"(?:\xef\xbb\xbf)?[ \t\n\r]*")


class GltfType(enum.Enum):
    GLTF = "gltf"
    GLB = "glb"
    INVALID = "invalid"


@dataclass(frozen=True)
class GlbContainer:
    json_chunk: bytes
    # Offset of the BIN payload within the container, None without a BIN chunk.
    bin_offset: int | None
    bin_length: int

    def bin_chunk(self, data: bytes) -> bytes | None:
        if self.bin_offset is None:
            return None
        return data[self.bin_offset : self.bin_offset + self.bin_length]


def determine_gltf_file_type(data: bytes) -> GltfType:
    if data[:4] == GLB_MAGIC:
        return GltfType.GLB
    start = JSON_LEADER.match(data).end()
    if data[start : start + 1] == b"{":
        return GltfType.GLTF
    return GltfType.INVALID


def read_glb(data: bytes) -> GlbContainer:
    if len(data) < GLB_HEADER_SIZE:
        raise GltfError(Error.INVALID_GLB, "Invalid GLB: file too small")

    magic, version, total_length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise GltfError(Error.INVALID_GLB, "Invalid GLB: bad magic")
    if version != GLB_VERSION_SUPPORTED:
        raise GltfError(Error.UNSUPPORTED_VERSION, f"Unsupported GLB version: {version} (expected {GLB_VERSION_SUPPORTED})")
    if total_length != len(data):
        raise GltfError(Error.INVALID_GLB, "Invalid GLB: length mismatch")

    json_chunk: bytes | None = None
    bin_offset: int | None = None
    bin_length = 0

    offset = GLB_HEADER_SIZE
    while offset < total_length:
        if offset + GLB_CHUNK_HEADER_SIZE > total_length:
            raise GltfError(Error.INVALID_GLB, "Invalid GLB: truncated chunk header")
        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        offset += GLB_CHUNK_HEADER_SIZE
        if offset + chunk_length > total_length:
            raise GltfError(Error.INVALID_GLB, "Invalid GLB: truncated chunk data")

        if json_chunk is None:
            if chunk_type != CHUNK_TYPE_JSON:
                raise GltfError(Error.INVALID_GLB, "Invalid GLB: first chunk is not JSON")
            json_chunk = data[offset : offset + chunk_length]
        elif chunk_type == CHUNK_TYPE_BIN and bin_offset is None:
            bin_offset = offset
            bin_length = chunk_length
        else:
            logger.debug("skipping GLB chunk type 0x%08X (%d bytes)", chunk_type, chunk_length)
        offset += chunk_length

    if json_chunk is None:
        raise GltfError(Error.INVALID_GLB, "Invalid GLB: missing JSON chunk")

    logger.debug("GLB: JSON chunk %d bytes, BIN chunk %s", len(json_chunk), bin_length if bin_offset is not None else "absent")
    return GlbContainer(json_chunk=json_chunk, bin_offset=bin_offset, bin_length=bin_length)


def build_glb(gltf: dict[str, Any], bin_chunk: bytes | None = None) -> bytes:
    json_bytes = json.dumps(gltf, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    json_padding = (4 - len(json_bytes) % 4) % 4
    if json_padding:
        json_bytes += b" " * json_padding

    chunks = struct.pack("<II", len(json_bytes), CHUNK_TYPE_JSON) + json_bytes
    if bin_chunk is not None:
        bin_padding = (4 - len(bin_chunk) % 4) % 4
        if bin_padding:
            bin_chunk += b"\x00" * bin_padding
        chunks += struct.pack("<II", len(bin_chunk), CHUNK_TYPE_BIN) + bin_chunk

    header = struct.pack("<4sII", GLB_MAGIC, GLB_VERSION_SUPPORTED, GLB_HEADER_SIZE + len(chunks))
    return header + chunks

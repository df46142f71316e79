import base64
import json
import struct

import pytest

from gltfscene import Options, Parser

POSITION_BYTES = struct.pack("<3f", 1.0, 2.0, 3.0)


def make_data_uri(payload: bytes, mime: str = "application/octet-stream") -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


@pytest.fixture
def data_uri():
    return make_data_uri


@pytest.fixture
def minimal_document():
    """One buffer, view, accessor, mesh, node and scene; POSITION = (1, 2, 3)."""
    return {
        "asset": {"version": "2.0", "generator": "tests"},
        "buffers": [{"byteLength": 12, "uri": make_data_uri(POSITION_BYTES)}],
        "bufferViews": [{"buffer": 0, "byteLength": 12}],
        "accessors": [{"componentType": 5126, "type": "VEC3", "count": 1, "bufferView": 0}],
        "meshes": [{"primitives": [{"attributes": {"POSITION": 0}}]}],
        "nodes": [{"mesh": 0}],
        "scenes": [{"nodes": [0]}],
        "scene": 0,
    }


@pytest.fixture
def load_document(tmp_path):
    def load(document, options=Options.NONE):
        return Parser().load_gltf(json.dumps(document).encode("utf-8"), tmp_path, options)

    return load


@pytest.fixture
def parse_document(load_document):
    def parse(document, options=Options.NONE):
        return load_document(document, options).parse()

    return parse

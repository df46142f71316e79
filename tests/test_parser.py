import json

import pytest

from gltfscene import (
    AccessorType,
    BufferTarget,
    ComponentType,
    Error,
    GltfDataBuffer,
    GltfError,
    MimeType,
    Options,
    Parser,
    PrimitiveType,
    get_error_message,
    load,
    sources,
)

from conftest import POSITION_BYTES


def test_minimal_document_end_to_end(parse_document, minimal_document):
    asset = parse_document(minimal_document)

    assert asset.counts() == {
        "buffers": 1,
        "bufferViews": 1,
        "accessors": 1,
        "images": 0,
        "textures": 0,
        "meshes": 1,
        "nodes": 1,
        "scenes": 1,
    }
    accessor = asset.accessors[0]
    assert accessor.count == 1
    assert accessor.buffer_view_index == 0
    assert accessor.component_type is ComponentType.FLOAT
    assert accessor.type is AccessorType.VEC3
    assert asset.buffers[0].data == sources.Array(bytes=POSITION_BYTES, mime_type=MimeType.OCTET_STREAM)
    assert asset.meshes[0].primitives[0].attributes == {"POSITION": 0}
    assert asset.nodes[0].mesh_index == 0
    assert asset.scenes[0].node_indices == [0]
    assert asset.default_scene == 0
    assert asset.info.version == "2.0"
    assert asset.info.generator == "tests"


def test_load_from_path_uses_the_file_directory(tmp_path, minimal_document):
    path = tmp_path / "scene.gltf"
    path.write_text(json.dumps(minimal_document), encoding="utf-8")

    asset = load(path)
    assert len(asset.meshes) == 1


def test_missing_directory_is_a_path_error(tmp_path):
    with pytest.raises(GltfError) as ei:
        Parser().load_gltf(b"{}", tmp_path / "missing")
    assert ei.value.error is Error.INVALID_PATH


def test_file_as_directory_is_a_path_error(tmp_path):
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")
    with pytest.raises(GltfError) as ei:
        Parser().load_gltf(b"{}", not_a_dir)
    assert ei.value.error is Error.INVALID_PATH


@pytest.mark.parametrize("options", [Options.NONE, Options.FORCE_PORTABLE_DECODING])
@pytest.mark.parametrize("raw", [b"{not json", b'{"asset": {"version": "2.0"}', b"\xff\xfe", b"[1, 2]"])
def test_malformed_json_is_a_syntax_error(tmp_path, raw, options):
    with pytest.raises(GltfError) as ei:
        Parser().load_gltf(raw, tmp_path, options)
    assert ei.value.error is Error.INVALID_JSON


@pytest.mark.parametrize("asset", [None, "2.0", {}, {"version": 2}])
def test_asset_field_gate(load_document, asset):
    document = {} if asset is None else {"asset": asset}
    with pytest.raises(GltfError) as ei:
        load_document(document)
    assert ei.value.error is Error.INVALID_OR_MISSING_ASSET_FIELD


def test_asset_field_gate_can_be_skipped(parse_document):
    asset = parse_document({"nodes": [{}]}, Options.SKIP_ASSET_FIELD_VALIDATION)
    assert asset.info is None
    assert len(asset.nodes) == 1


def test_portable_decoding_produces_the_same_asset(parse_document, minimal_document):
    fast = parse_document(minimal_document)
    portable = parse_document(minimal_document, Options.FORCE_PORTABLE_DECODING)
    assert fast == portable


def test_absent_arrays_are_empty(parse_document):
    asset = parse_document({"asset": {"version": "2.0"}})
    assert all(count == 0 for count in asset.counts().values())
    assert asset.default_scene is None


@pytest.mark.parametrize("key", ["buffers", "bufferViews", "accessors", "images", "textures", "meshes", "nodes", "scenes"])
def test_array_field_with_wrong_type_fails(parse_document, key):
    with pytest.raises(GltfError) as ei:
        parse_document({"asset": {"version": "2.0"}, key: {}})
    assert ei.value.error is Error.INVALID_GLTF


@pytest.mark.parametrize("key", ["bufferViews", "accessors", "nodes", "scenes"])
def test_array_element_must_be_an_object(parse_document, key):
    with pytest.raises(GltfError):
        parse_document({"asset": {"version": "2.0"}, key: [42]})


def test_one_bad_element_voids_the_whole_parse(tmp_path, minimal_document):
    minimal_document["accessors"].append({"componentType": 5126, "type": "VEC3"})
    result = Parser().try_load(json.dumps(minimal_document).encode(), tmp_path)

    assert not result
    assert result.asset is None
    assert result.error is Error.INVALID_GLTF
    assert "accessors[1].count" in result.message


def test_try_load_success(tmp_path, minimal_document):
    result = Parser().try_load(json.dumps(minimal_document).encode(), tmp_path)
    assert result
    assert result.error is Error.NONE
    assert result.asset.accessors[0].count == 1


def test_try_load_without_directory_for_in_memory_data():
    result = Parser().try_load(b"{}")
    assert result.error is Error.INVALID_PATH


def test_every_error_code_has_a_message():
    for error in Error:
        assert isinstance(get_error_message(error), str)
    assert get_error_message(Error.INVALID_GLTF)
    assert GltfError(Error.INVALID_PATH).detail is None
    assert str(GltfError(Error.INVALID_PATH)) == get_error_message(Error.INVALID_PATH)


def test_parse_twice_builds_independent_assets(load_document, minimal_document):
    gltf = load_document(minimal_document)
    first = gltf.parse()
    second = gltf.parse()
    assert first == second
    assert first is not second
    assert first.nodes is not second.nodes


def test_parser_instance_is_reusable(tmp_path, minimal_document):
    parser = Parser()
    with pytest.raises(GltfError):
        parser.load_gltf(b"{", tmp_path)
    gltf = parser.load_gltf(json.dumps(minimal_document).encode(), tmp_path)
    assert len(gltf.parse().scenes) == 1


def test_data_buffer_copies_input(tmp_path, minimal_document):
    raw = bytearray(json.dumps(minimal_document).encode())
    data = GltfDataBuffer(raw)
    raw[:] = b" " * len(raw)
    assert Parser().load(data, tmp_path).accessors[0].count == 1


def test_indexing_stability(parse_document):
    document = {
        "asset": {"version": "2.0"},
        "bufferViews": [{"buffer": 0, "byteLength": i + 1} for i in range(4)],
        "accessors": [{"componentType": 5121, "type": "SCALAR", "count": i} for i in range(5)],
        "meshes": [{"primitives": [], "name": f"mesh{i}"} for i in range(3)],
        "nodes": [{"name": f"node{i}"} for i in range(6)],
        "scenes": [{"name": f"scene{i}"} for i in range(2)],
    }
    asset = parse_document(document)

    assert [v.byte_length for v in asset.buffer_views] == [1, 2, 3, 4]
    assert [a.count for a in asset.accessors] == [0, 1, 2, 3, 4]
    assert [m.name for m in asset.meshes] == ["mesh0", "mesh1", "mesh2"]
    assert [n.name for n in asset.nodes] == [f"node{i}" for i in range(6)]
    assert [s.name for s in asset.scenes] == ["scene0", "scene1"]


def test_required_extension_must_be_enabled(load_document):
    document = {"asset": {"version": "2.0"}, "extensionsRequired": ["KHR_texture_basisu"]}
    with pytest.raises(GltfError) as ei:
        load_document(document).parse()
    assert ei.value.error is Error.MISSING_EXTENSIONS

    asset = load_document(document, Options.ENABLE_BASIS_UNIVERSAL_TEXTURE_EXTENSION).parse()
    assert asset.extensions_required == ["KHR_texture_basisu"]


def test_unknown_required_extension_always_fails(parse_document):
    everything = Options.ENABLE_BASIS_UNIVERSAL_TEXTURE_EXTENSION | Options.ENABLE_DDS_TEXTURE_EXTENSION
    with pytest.raises(GltfError) as ei:
        parse_document({"asset": {"version": "2.0"}, "extensionsRequired": ["KHR_draco_mesh_compression"]}, everything)
    assert ei.value.error is Error.MISSING_EXTENSIONS


def test_extensions_used_is_recorded(parse_document):
    asset = parse_document({"asset": {"version": "2.0"}, "extensionsUsed": ["KHR_materials_unlit"]})
    assert asset.extensions_used == ["KHR_materials_unlit"]


# Buffers


def test_buffer_requires_byte_length(parse_document, data_uri):
    with pytest.raises(GltfError):
        parse_document({"asset": {"version": "2.0"}, "buffers": [{"uri": data_uri(b"abcd")}]})


def test_buffer_without_uri_outside_glb_fails(parse_document):
    with pytest.raises(GltfError) as ei:
        parse_document({"asset": {"version": "2.0"}, "buffers": [{"byteLength": 4}]})
    assert ei.value.error is Error.INVALID_GLTF


def test_buffer_with_undecodable_data_uri_fails(parse_document):
    document = {"asset": {"version": "2.0"}, "buffers": [{"byteLength": 4, "uri": "data:application/octet-stream;hex,00"}]}
    with pytest.raises(GltfError):
        parse_document(document)


def test_external_buffer_is_left_as_a_path(tmp_path, parse_document):
    (tmp_path / "geometry.bin").write_bytes(b"\x00" * 8)
    asset = parse_document({"asset": {"version": "2.0"}, "buffers": [{"byteLength": 8, "uri": "geometry.bin", "name": "geo"}]})

    buffer = asset.buffers[0]
    assert buffer.name == "geo"
    assert buffer.data == sources.FilePath(path=tmp_path / "geometry.bin", mime_type=MimeType.OCTET_STREAM)


def test_external_buffer_is_loaded_when_enabled(tmp_path, parse_document):
    (tmp_path / "geometry.bin").write_bytes(b"\x01\x02\x03\x04")
    document = {"asset": {"version": "2.0"}, "buffers": [{"byteLength": 4, "uri": "geometry.bin"}]}
    asset = parse_document(document, Options.LOAD_EXTERNAL_FILE_BUFFERS)

    assert isinstance(asset.buffers[0].data, sources.Array)
    assert asset.buffers[0].data.bytes == b"\x01\x02\x03\x04"


def test_missing_external_buffer_fails_when_loading(parse_document):
    document = {"asset": {"version": "2.0"}, "buffers": [{"byteLength": 4, "uri": "nowhere.bin"}]}
    with pytest.raises(GltfError) as ei:
        parse_document(document, Options.LOAD_EXTERNAL_FILE_BUFFERS)
    assert ei.value.error is Error.MISSING_EXTERNAL_BUFFER


# Buffer views


def test_buffer_view_fields_and_defaults(parse_document):
    document = {
        "asset": {"version": "2.0"},
        "bufferViews": [
            {"buffer": 0, "byteLength": 12},
            {"buffer": 1, "byteLength": 64, "byteOffset": 16, "byteStride": 12, "target": 34963, "name": "idx"},
        ],
    }
    plain, full = parse_document(document).buffer_views

    assert plain.byte_offset == 0
    assert plain.byte_stride is None
    assert plain.target is None
    assert plain.name is None
    assert full.buffer_index == 1
    assert full.byte_offset == 16
    assert full.byte_stride == 12
    assert full.target is BufferTarget.ELEMENT_ARRAY_BUFFER
    assert full.name == "idx"


@pytest.mark.parametrize(
    "view",
    [
        {"byteLength": 12},
        {"buffer": 0},
        {"buffer": -1, "byteLength": 12},
        {"buffer": 0, "byteLength": "12"},
        {"buffer": 0, "byteLength": 12, "target": 1},
    ],
)
def test_invalid_buffer_views(parse_document, view):
    with pytest.raises(GltfError):
        parse_document({"asset": {"version": "2.0"}, "bufferViews": [view]})


# Accessors


def test_accessor_defaults(parse_document):
    asset = parse_document({"asset": {"version": "2.0"}, "accessors": [{"componentType": 5123, "type": "SCALAR", "count": 6}]})
    accessor = asset.accessors[0]

    assert accessor.component_type is ComponentType.UNSIGNED_SHORT
    assert accessor.byte_offset == 0
    assert accessor.normalized is False
    assert accessor.buffer_view_index is None
    assert accessor.min is None and accessor.max is None


def test_accessor_optional_fields(parse_document):
    accessor_object = {
        "componentType": 5121,
        "type": "VEC4",
        "count": 2,
        "bufferView": 3,
        "byteOffset": 8,
        "normalized": True,
        "min": [0, 0, 0, 0],
        "max": [255, 255, 255, 255],
        "name": "colors",
    }
    accessor = parse_document({"asset": {"version": "2.0"}, "accessors": [accessor_object]}).accessors[0]

    assert accessor.buffer_view_index == 3
    assert accessor.byte_offset == 8
    assert accessor.normalized is True
    assert accessor.max == [255.0, 255.0, 255.0, 255.0]
    assert accessor.name == "colors"
    assert accessor.element_size == 4


def test_double_accessors_are_gated(parse_document):
    document = {"asset": {"version": "2.0"}, "accessors": [{"componentType": 5130, "type": "MAT4", "count": 1}]}
    with pytest.raises(GltfError) as ei:
        parse_document(document)
    assert ei.value.error is Error.INVALID_GLTF

    accessor = parse_document(document, Options.ALLOW_DOUBLE_PRECISION_ACCESSORS).accessors[0]
    assert accessor.component_type is ComponentType.DOUBLE
    assert accessor.component_type == 5130


def test_unknown_component_type_and_type_are_kept_as_invalid(parse_document):
    document = {"asset": {"version": "2.0"}, "accessors": [{"componentType": 1234, "type": "VEC5", "count": 1}]}
    accessor = parse_document(document).accessors[0]
    assert accessor.component_type is ComponentType.INVALID
    assert accessor.type is AccessorType.INVALID


@pytest.mark.parametrize(
    "accessor",
    [
        {"type": "SCALAR", "count": 1},
        {"componentType": 5126, "count": 1},
        {"componentType": 5126, "type": "SCALAR"},
        {"componentType": 5126, "type": 3, "count": 1},
        {"componentType": 5126, "type": "SCALAR", "count": 1, "normalized": 1},
        {"componentType": 5126, "type": "SCALAR", "count": 1, "min": ["a"]},
        {"componentType": 5126.0, "type": "SCALAR", "count": 1},
    ],
)
def test_invalid_accessors(parse_document, accessor):
    with pytest.raises(GltfError):
        parse_document({"asset": {"version": "2.0"}, "accessors": [accessor]})


def test_primitive_mode_defaults_to_triangles(parse_document, minimal_document):
    primitive = parse_document(minimal_document).meshes[0].primitives[0]
    assert primitive.type is PrimitiveType.TRIANGLES
    assert primitive.type == 4

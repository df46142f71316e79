from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from . import extensions, jsonutil, sources
from .errors import Error, GltfError, get_error_message
from .glb import GlbContainer, GltfType, determine_gltf_file_type, read_glb
from .jsonutil import (
    optional_array,
    optional_bool,
    optional_number_list,
    optional_object,
    optional_string,
    optional_uint,
    required_string,
    required_uint,
    string_list,
    uint_list,
)
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
from .uri import decode_uri, get_mime_type_from_string

logger = logging.getLogger(__name__)

T = TypeVar("T")

BUFFER_TARGET_VALUES = frozenset(target.value for target in BufferTarget)
PRIMITIVE_TYPE_VALUES = frozenset(mode.value for mode in PrimitiveType)


class GltfDataBuffer:
    """Owns the raw input bytes (JSON text or a whole GLB container)."""

    def __init__(self, data: bytes | bytearray | memoryview, path: Path | None = None) -> None:
        self._data = bytes(data)
        self.path = path

    @classmethod
    def from_path(cls, path: str | Path) -> "GltfDataBuffer":
        path = Path(path)
        try:
            return cls(path.read_bytes(), path)
        except OSError as exc:
            raise GltfError(Error.INVALID_PATH, f"Cannot read {path}: {exc}") from exc

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def file_type(self) -> GltfType:
        return determine_gltf_file_type(self._data)

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class LoadResult:
    asset: Asset | None
    error: Error = Error.NONE
    detail: str | None = None

    @property
    def message(self) -> str:
        return self.detail or get_error_message(self.error)

    def __bool__(self) -> bool:
        return self.error is Error.NONE


def iter_array(parent: dict[str, Any], key: str, where: str) -> Iterator[tuple[int, dict[str, Any]]]:
    """Yield ``(index, object)`` for each element of ``parent[key]``.

    An absent key yields nothing. Iteration stops with ``GltfError`` at the
    first element that is not an object.
    """
    array = optional_array(parent, key, where)
    if array is None:
        return
    for index, element in enumerate(array):
        if not isinstance(element, dict):
            raise GltfError(Error.INVALID_GLTF, f"{where}.{key}[{index}] must be an object")
        yield index, element


def _float_tuple(values: Any, size: int) -> tuple[float, ...] | None:
    if not isinstance(values, list) or len(values) != size:
        return None
    if not all(jsonutil.is_number(v) for v in values):
        return None
    return tuple(float(v) for v in values)


class Gltf:
    """A loaded document whose top-level ``asset`` block passed validation.

    Only ``Parser`` constructs these. ``parse`` may be called more than once;
    every call builds an independent ``Asset``.
    """

    def __init__(
        self,
        root: dict[str, Any],
        directory: Path,
        options: Options,
        *,
        container: GlbContainer | None = None,
        container_data: bytes = b"",
    ) -> None:
        self._root = root
        self.directory = directory
        self.options = options
        self._container = container
        self._container_data = container_data
        self.info = self._read_asset_info()

    @property
    def is_binary(self) -> bool:
        return self._container is not None

    def _read_asset_info(self) -> AssetInfo | None:
        asset = self._root.get("asset")
        if not isinstance(asset, dict) or not isinstance(asset.get("version"), str):
            if not self.options & Options.SKIP_ASSET_FIELD_VALIDATION:
                raise GltfError(Error.INVALID_OR_MISSING_ASSET_FIELD, "asset.version is missing or not a string")
            return None

        def text(key: str) -> str | None:
            value = asset.get(key)
            return value if isinstance(value, str) else None

        return AssetInfo(
            version=asset["version"],
            min_version=text("minVersion"),
            generator=text("generator"),
            copyright=text("copyright"),
        )

    def _check_required_extensions(self) -> None:
        enabled = extensions.enabled_extensions(self.options)
        for name in string_list(self._root, "extensionsRequired", "glTF"):
            if name not in enabled:
                raise GltfError(Error.MISSING_EXTENSIONS, f"Required extension {name} is not enabled")

    def parse(self) -> Asset:
        """Parse every entity array; the first failure voids the whole asset."""
        self._check_required_extensions()
        asset = Asset(info=self.info)
        asset.extensions_used = string_list(self._root, "extensionsUsed", "glTF")
        asset.extensions_required = string_list(self._root, "extensionsRequired", "glTF")

        asset.buffers = self._parse_array("buffers", self._parse_buffer)
        asset.buffer_views = self._parse_array("bufferViews", self._parse_buffer_view)
        asset.accessors = self._parse_array("accessors", self._parse_accessor)
        asset.images = self._parse_array("images", self._parse_image)
        asset.textures = self._parse_array("textures", self._parse_texture)
        asset.meshes = self._parse_array("meshes", self._parse_mesh)
        asset.nodes = self._parse_array("nodes", self._parse_node)
        asset.default_scene = optional_uint(self._root, "scene", "glTF")
        asset.scenes = self._parse_array("scenes", self._parse_scene)

        logger.debug("parsed asset: %s", asset.counts())
        return asset

    def _parse_array(self, key: str, parse_element: Callable[[int, dict[str, Any]], T]) -> list[T]:
        return [parse_element(index, element) for index, element in iter_array(self._root, key, "glTF")]

    def _load_file(self, source: sources.FilePath, where: str) -> sources.Array:
        try:
            with source.path.open("rb") as fp:
                fp.seek(source.byte_offset)
                data = fp.read() if source.byte_length is None else fp.read(source.byte_length)
        except OSError as exc:
            raise GltfError(Error.MISSING_EXTERNAL_BUFFER, f"{where}: cannot read {source.path}: {exc}") from exc
        logger.debug("%s: loaded %d bytes from %s", where, len(data), source.path)
        return sources.Array(bytes=data, mime_type=source.mime_type)

    def _parse_buffer(self, index: int, obj: dict[str, Any]) -> Buffer:
        where = f"buffers[{index}]"
        byte_length = required_uint(obj, "byteLength", where)

        uri = optional_string(obj, "uri", where)
        data: DataSource
        if uri is not None:
            data = decode_uri(uri, self.directory, self.options)
            if isinstance(data, sources.FilePath) and self.options & Options.LOAD_EXTERNAL_FILE_BUFFERS:
                data = self._load_file(data, where)
        elif index == 0 and self._container is not None and self._container.bin_offset is not None:
            # The first buffer of a GLB may omit its uri and refer to the BIN chunk.
            if self.options & Options.LOAD_CONTAINER_EMBEDDED_BUFFERS:
                data = sources.Array(bytes=self._container.bin_chunk(self._container_data), mime_type=MimeType.GLTF_BUFFER)
            else:
                data = sources.ContainerChunk(byte_offset=self._container.bin_offset, byte_length=self._container.bin_length)
        else:
            raise GltfError(Error.INVALID_GLTF, f"{where} has no uri and no GLB binary chunk to refer to")

        return Buffer(byte_length=byte_length, data=data, name=optional_string(obj, "name", where))

    def _parse_buffer_view(self, index: int, obj: dict[str, Any]) -> BufferView:
        where = f"bufferViews[{index}]"
        target = optional_uint(obj, "target", where)
        if target is not None and target not in BUFFER_TARGET_VALUES:
            raise GltfError(Error.INVALID_GLTF, f"{where}.target has unknown value {target}")

        return BufferView(
            buffer_index=required_uint(obj, "buffer", where),
            byte_length=required_uint(obj, "byteLength", where),
            byte_offset=optional_uint(obj, "byteOffset", where) or 0,
            byte_stride=optional_uint(obj, "byteStride", where),
            target=BufferTarget(target) if target is not None else None,
            name=optional_string(obj, "name", where),
        )

    def _parse_accessor(self, index: int, obj: dict[str, Any]) -> Accessor:
        where = f"accessors[{index}]"
        component_type = ComponentType.from_code(required_uint(obj, "componentType", where))
        if component_type is ComponentType.DOUBLE and not self.options & Options.ALLOW_DOUBLE_PRECISION_ACCESSORS:
            raise GltfError(Error.INVALID_GLTF, f"{where} uses double components, which are not allowed")

        normalized = optional_bool(obj, "normalized", where)
        return Accessor(
            component_type=component_type,
            type=AccessorType.from_string(required_string(obj, "type", where)),
            count=required_uint(obj, "count", where),
            buffer_view_index=optional_uint(obj, "bufferView", where),
            byte_offset=optional_uint(obj, "byteOffset", where) or 0,
            normalized=bool(normalized),
            min=optional_number_list(obj, "min", where),
            max=optional_number_list(obj, "max", where),
            name=optional_string(obj, "name", where),
        )

    def _parse_image(self, index: int, obj: dict[str, Any]) -> Image:
        where = f"images[{index}]"
        uri = optional_string(obj, "uri", where)
        mime = optional_string(obj, "mimeType", where)

        data: DataSource
        if uri is not None:
            if "bufferView" in obj:
                raise GltfError(Error.INVALID_GLTF, f"{where} declares both uri and bufferView")
            data = decode_uri(uri, self.directory, self.options)
            if mime is not None:
                data = dataclasses.replace(data, mime_type=get_mime_type_from_string(mime))
            if isinstance(data, sources.FilePath) and self.options & Options.LOAD_EXTERNAL_FILE_IMAGES:
                data = self._load_file(data, where)
        else:
            buffer_view = optional_uint(obj, "bufferView", where)
            if buffer_view is None:
                raise GltfError(Error.INVALID_GLTF, f"{where} needs either uri or bufferView")
            if mime is None:
                raise GltfError(Error.INVALID_GLTF, f"{where}.mimeType is required with bufferView")
            data = sources.BufferView(buffer_view_index=buffer_view, mime_type=get_mime_type_from_string(mime))

        return Image(data=data, name=optional_string(obj, "name", where))

    def _parse_texture(self, index: int, obj: dict[str, Any]) -> Texture:
        where = f"textures[{index}]"
        texture_extensions = optional_object(obj, "extensions", where)
        source = optional_uint(obj, "source", where)
        if source is None and texture_extensions is None:
            raise GltfError(Error.INVALID_GLTF, f"{where} has no source image")

        image_index = source
        fallback_image_index = None
        if texture_extensions is not None:
            extension_source = extensions.find_texture_source(texture_extensions, self.options, where=where)
            if extension_source is not None:
                image_index = extension_source
                fallback_image_index = source

        return Texture(
            image_index=image_index,
            fallback_image_index=fallback_image_index,
            sampler_index=optional_uint(obj, "sampler", where),
            name=optional_string(obj, "name", where),
        )

    def _parse_primitive(self, where: str, obj: dict[str, Any]) -> Primitive:
        attributes_object = optional_object(obj, "attributes", where)
        if attributes_object is None:
            raise GltfError(Error.INVALID_GLTF, f"{where}.attributes is required")
        attributes: dict[str, int] = {}
        for semantic, accessor_index in attributes_object.items():
            if not jsonutil.is_uint(accessor_index):
                raise GltfError(Error.INVALID_GLTF, f"{where}.attributes.{semantic} must be an accessor index")
            attributes[semantic] = accessor_index

        mode = optional_uint(obj, "mode", where)
        if mode is None:
            mode = PrimitiveType.TRIANGLES
        elif mode not in PRIMITIVE_TYPE_VALUES:
            raise GltfError(Error.INVALID_GLTF, f"{where}.mode has unknown value {mode}")

        return Primitive(
            attributes=attributes,
            type=PrimitiveType(mode),
            indices_accessor=optional_uint(obj, "indices", where),
            material_index=optional_uint(obj, "material", where),
        )

    def _parse_mesh(self, index: int, obj: dict[str, Any]) -> Mesh:
        where = f"meshes[{index}]"
        if "primitives" not in obj:
            raise GltfError(Error.INVALID_GLTF, f"{where}.primitives is required")
        primitives = [
            self._parse_primitive(f"{where}.primitives[{i}]", primitive)
            for i, primitive in iter_array(obj, "primitives", where)
        ]
        return Mesh(primitives=primitives, name=optional_string(obj, "name", where))

    def _parse_transform(self, where: str, obj: dict[str, Any]) -> Transform:
        if "matrix" in obj:
            matrix = _float_tuple(obj["matrix"], 16)
            if matrix is not None:
                return TransformMatrix(values=matrix)
            logger.warning("%s.matrix is not 16 numbers; ignoring it", where)

        defaults = TRS()
        components: dict[str, tuple[float, ...]] = {}
        for key, default in (("translation", defaults.translation), ("rotation", defaults.rotation), ("scale", defaults.scale)):
            if key not in obj:
                continue
            value = _float_tuple(obj[key], len(default))
            if value is None:
                logger.warning("%s.%s is malformed; using the default", where, key)
                continue
            components[key] = value
        return TRS(**components)

    def _parse_node(self, index: int, obj: dict[str, Any]) -> Node:
        where = f"nodes[{index}]"
        return Node(
            mesh_index=optional_uint(obj, "mesh", where),
            children=uint_list(obj, "children", where),
            transform=self._parse_transform(where, obj),
            name=optional_string(obj, "name", where),
        )

    def _parse_scene(self, index: int, obj: dict[str, Any]) -> Scene:
        where = f"scenes[{index}]"
        return Scene(node_indices=uint_list(obj, "nodes", where), name=optional_string(obj, "name", where))


class Parser:
    """Entry point for loading documents.

    Holds no per-document state, so one instance can load any number of
    documents one after the other.
    """

    def load_gltf(self, data: GltfDataBuffer | bytes, directory: str | Path, options: Options = Options.NONE) -> Gltf:
        directory = self._check_directory(directory)
        buffer = data if isinstance(data, GltfDataBuffer) else GltfDataBuffer(data)
        root = self._decode_json(buffer.data, options)
        return Gltf(root, directory, options)

    def load_binary_gltf(self, data: GltfDataBuffer | bytes, directory: str | Path, options: Options = Options.NONE) -> Gltf:
        directory = self._check_directory(directory)
        buffer = data if isinstance(data, GltfDataBuffer) else GltfDataBuffer(data)
        container = read_glb(buffer.data)
        root = self._decode_json(container.json_chunk, options)
        return Gltf(root, directory, options, container=container, container_data=buffer.data)

    def load(self, data: GltfDataBuffer | bytes, directory: str | Path | None = None, options: Options = Options.NONE) -> Asset:
        """Detect the input form, validate it and parse it into an ``Asset``."""
        buffer = data if isinstance(data, GltfDataBuffer) else GltfDataBuffer(data)
        if directory is None:
            if buffer.path is None:
                raise GltfError(Error.INVALID_PATH, "No directory given and the data was not loaded from a file")
            directory = buffer.path.parent

        file_type = buffer.file_type
        if file_type is GltfType.GLB:
            gltf = self.load_binary_gltf(buffer, directory, options)
        elif file_type is GltfType.GLTF:
            gltf = self.load_gltf(buffer, directory, options)
        else:
            raise GltfError(Error.INVALID_JSON, "Input is neither glTF JSON nor a GLB container")
        return gltf.parse()

    def try_load(self, data: GltfDataBuffer | bytes, directory: str | Path | None = None, options: Options = Options.NONE) -> LoadResult:
        try:
            return LoadResult(asset=self.load(data, directory, options))
        except GltfError as exc:
            logger.debug("load failed: %s", exc)
            return LoadResult(asset=None, error=exc.error, detail=exc.detail)

    @staticmethod
    def _check_directory(directory: str | Path) -> Path:
        path = Path(directory)
        if str(directory) == "" or not path.is_dir():
            raise GltfError(Error.INVALID_PATH, f"Not a directory: {directory!r}")
        return path

    @staticmethod
    def _decode_json(raw: bytes, options: Options) -> dict[str, Any]:
        try:
            root = jsonutil.loads(raw.decode("utf-8-sig"), portable=bool(options & Options.FORCE_PORTABLE_DECODING))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GltfError(Error.INVALID_JSON, f"Invalid JSON: {exc}") from exc
        if not isinstance(root, dict):
            raise GltfError(Error.INVALID_JSON, "JSON root is not an object")
        return root


def load(path: str | Path, options: Options = Options.NONE) -> Asset:
    return Parser().load(GltfDataBuffer.from_path(path), options=options)

"""Consumer-side helpers over a parsed ``Asset``.

The parser stores cross-references as plain indices; everything here is
where they get resolved and checked.
"""

from __future__ import annotations

import itertools
import logging
import struct
from dataclasses import dataclass
from typing import Iterable, Iterator

from . import sources
from .errors import Error, GltfError
from .transform import Mat4, mat4_identity, mat4_multiply, mat4_transform_point, node_local_matrix
from .types import Accessor, AccessorType, Asset, ComponentType

logger = logging.getLogger(__name__)

Vec3 = tuple[float, float, float]


@dataclass(frozen=True)
class Aabb:
    min_xyz: Vec3
    max_xyz: Vec3

    @staticmethod
    def empty() -> "Aabb":
        inf = float("inf")
        return Aabb((inf, inf, inf), (-inf, -inf, -inf))

    @staticmethod
    def from_points(points: Iterable[Vec3]) -> "Aabb":
        points = list(points)
        if not points:
            return Aabb.empty()
        xs, ys, zs = zip(*points)
        return Aabb((min(xs), min(ys), min(zs)), (max(xs), max(ys), max(zs)))

    def is_empty(self) -> bool:
        return any(lo > hi for lo, hi in zip(self.min_xyz, self.max_xyz))

    def union(self, other: "Aabb") -> "Aabb":
        if self.is_empty():
            return other
        if other.is_empty():
            return self
        return Aabb.from_points([self.min_xyz, self.max_xyz, other.min_xyz, other.max_xyz])

    def corners(self) -> list[Vec3]:
        # Each axis independently takes its min or max.
        return list(itertools.product(*zip(self.min_xyz, self.max_xyz)))


class BufferCache:
    """Resolves buffers to bytes once and hands out slices of them.

    ``container`` is the whole GLB the asset was parsed from; it is only
    needed for buffers left as ``sources.ContainerChunk``.
    """

    def __init__(self, asset: Asset, *, container: bytes | None = None) -> None:
        self.asset = asset
        self.container = container
        self._buffers: dict[int, bytes] = {}

    def buffer(self, buffer_index: int) -> bytes:
        if buffer_index not in self._buffers:
            self._buffers[buffer_index] = self._load_buffer(buffer_index)
        return self._buffers[buffer_index]

    def _load_buffer(self, buffer_index: int) -> bytes:
        if not (0 <= buffer_index < len(self.asset.buffers)):
            raise GltfError(Error.INVALID_GLTF, f"Buffer index out of range: {buffer_index}")

        match self.asset.buffers[buffer_index].data:
            case sources.Array(bytes=data):
                return data
            case sources.FilePath(path=path, byte_offset=offset, byte_length=length):
                try:
                    data = path.read_bytes()
                except OSError as exc:
                    raise GltfError(Error.MISSING_EXTERNAL_BUFFER, f"Cannot read buffer {buffer_index} from {path}: {exc}") from exc
                logger.debug("buffer %d: read %d bytes from %s", buffer_index, len(data), path)
                return data[offset:] if length is None else data[offset : offset + length]
            case sources.ContainerChunk(byte_offset=offset, byte_length=length):
                if self.container is None:
                    raise GltfError(Error.MISSING_EXTERNAL_BUFFER, f"Buffer {buffer_index} lives in a GLB container that was not supplied")
                return self.container[offset : offset + length]
            case sources.BufferView():
                raise GltfError(Error.INVALID_GLTF, f"Buffer {buffer_index} cannot be backed by a buffer view")
            case other:
                raise TypeError(f"Unknown data source: {other!r}")

    def buffer_view(self, view_index: int) -> bytes:
        views = self.asset.buffer_views
        if not (0 <= view_index < len(views)):
            raise GltfError(Error.INVALID_GLTF, f"bufferView index out of range: {view_index}")
        view = views[view_index]
        data = self.buffer(view.buffer_index)
        if view.byte_offset + view.byte_length > len(data):
            raise GltfError(Error.INVALID_GLTF, f"bufferView {view_index} points outside buffer {view.buffer_index}")
        return data[view.byte_offset : view.byte_offset + view.byte_length]

    def image(self, image_index: int) -> bytes:
        images = self.asset.images
        if not (0 <= image_index < len(images)):
            raise GltfError(Error.INVALID_GLTF, f"Image index out of range: {image_index}")

        match images[image_index].data:
            case sources.Array(bytes=data):
                return data
            case sources.BufferView(buffer_view_index=view_index):
                return self.buffer_view(view_index)
            case sources.FilePath(path=path):
                try:
                    return path.read_bytes()
                except OSError as exc:
                    raise GltfError(Error.MISSING_EXTERNAL_BUFFER, f"Cannot read image {image_index} from {path}: {exc}") from exc
            case sources.ContainerChunk(byte_offset=offset, byte_length=length):
                if self.container is None:
                    raise GltfError(Error.MISSING_EXTERNAL_BUFFER, f"Image {image_index} lives in a GLB container that was not supplied")
                return self.container[offset : offset + length]
            case other:
                raise TypeError(f"Unknown data source: {other!r}")


def _normalize(value: int, component_type: ComponentType) -> float:
    bits = component_type.byte_size * 8
    if component_type in (ComponentType.BYTE, ComponentType.SHORT):
        return max(value / float((1 << (bits - 1)) - 1), -1.0)
    return value / float((1 << bits) - 1)


def read_accessor(asset: Asset, accessor_index: int, cache: BufferCache) -> list[tuple[float, ...]]:
    """Return one tuple of components per element.

    Integer components of a ``normalized`` accessor come back as floats in
    [0, 1] or [-1, 1]. An accessor without a buffer view reads as zeros.
    """
    accessors = asset.accessors
    if not (0 <= accessor_index < len(accessors)):
        raise GltfError(Error.INVALID_GLTF, f"Accessor index out of range: {accessor_index}")
    accessor: Accessor = accessors[accessor_index]

    if accessor.component_type is ComponentType.INVALID:
        raise GltfError(Error.INVALID_GLTF, f"Accessor {accessor_index} has an unknown componentType")
    if accessor.type is AccessorType.INVALID:
        raise GltfError(Error.INVALID_GLTF, f"Accessor {accessor_index} has an unknown type")

    components = accessor.type.component_count
    if accessor.buffer_view_index is None:
        return [(0,) * components for _ in range(accessor.count)]
    if accessor.count == 0:
        return []

    data = cache.buffer_view(accessor.buffer_view_index)
    view = asset.buffer_views[accessor.buffer_view_index]

    element_size = accessor.element_size
    stride = view.byte_stride or element_size
    if stride < element_size:
        raise GltfError(Error.INVALID_GLTF, f"bufferView {accessor.buffer_view_index} byteStride is smaller than accessor {accessor_index} elements")
    total_bytes_needed = accessor.byte_offset + (accessor.count - 1) * stride + element_size
    if total_bytes_needed > len(data):
        raise GltfError(Error.INVALID_GLTF, f"Accessor {accessor_index} points outside its bufferView")

    unpack_fmt = "<" + accessor.component_type.struct_format * components
    normalize = accessor.normalized and accessor.component_type not in (ComponentType.FLOAT, ComponentType.DOUBLE)

    out: list[tuple[float, ...]] = []
    for i in range(accessor.count):
        values = struct.unpack_from(unpack_fmt, data, accessor.byte_offset + i * stride)
        if normalize:
            values = tuple(_normalize(v, accessor.component_type) for v in values)
        out.append(values)
    return out


def iterate_scene_nodes(asset: Asset, scene_index: int | None = None) -> Iterator[tuple[int, Mat4]]:
    """Yield ``(node_index, world_matrix)`` depth-first in document order.

    Walks an explicit stack, so graph depth does not touch the call stack.
    A node reached twice means the hierarchy is not a tree.
    """
    if scene_index is None:
        scene_index = asset.default_scene if asset.default_scene is not None else 0
    if not (0 <= scene_index < len(asset.scenes)):
        raise GltfError(Error.INVALID_GLTF, f"Scene index out of range: {scene_index}")

    nodes = asset.nodes
    visited: set[int] = set()
    root_indices = asset.scenes[scene_index].node_indices
    stack: list[tuple[int, Mat4]] = [(index, mat4_identity()) for index in reversed(root_indices)]
    while stack:
        node_index, parent_matrix = stack.pop()
        if not (0 <= node_index < len(nodes)):
            raise GltfError(Error.INVALID_GLTF, f"Node index out of range: {node_index}")
        if node_index in visited:
            raise GltfError(Error.INVALID_GLTF, f"Node {node_index} is reachable more than once")
        visited.add(node_index)

        node = nodes[node_index]
        world_matrix = mat4_multiply(parent_matrix, node_local_matrix(node))
        yield node_index, world_matrix
        for child_index in reversed(node.children):
            stack.append((child_index, world_matrix))


def validate_asset_indices(asset: Asset) -> None:
    """Raise ``GltfError`` for the first cross-reference that does not resolve."""

    def check(index: int | None, count: int, what: str) -> None:
        if index is not None and not (0 <= index < count):
            raise GltfError(Error.INVALID_GLTF, f"{what} index {index} is out of range (have {count})")

    for i, view in enumerate(asset.buffer_views):
        check(view.buffer_index, len(asset.buffers), f"bufferViews[{i}].buffer")
    for i, accessor in enumerate(asset.accessors):
        if accessor.component_type is ComponentType.INVALID:
            raise GltfError(Error.INVALID_GLTF, f"accessors[{i}].componentType is not a known component type")
        if accessor.type is AccessorType.INVALID:
            raise GltfError(Error.INVALID_GLTF, f"accessors[{i}].type is not a known accessor type")
        check(accessor.buffer_view_index, len(asset.buffer_views), f"accessors[{i}].bufferView")
    for i, image in enumerate(asset.images):
        if isinstance(image.data, sources.BufferView):
            check(image.data.buffer_view_index, len(asset.buffer_views), f"images[{i}].bufferView")
    for i, texture in enumerate(asset.textures):
        check(texture.image_index, len(asset.images), f"textures[{i}].source")
        check(texture.fallback_image_index, len(asset.images), f"textures[{i}].fallback source")
    for i, mesh in enumerate(asset.meshes):
        for j, primitive in enumerate(mesh.primitives):
            where = f"meshes[{i}].primitives[{j}]"
            for semantic, accessor_index in primitive.attributes.items():
                check(accessor_index, len(asset.accessors), f"{where}.attributes.{semantic}")
            check(primitive.indices_accessor, len(asset.accessors), f"{where}.indices")
    for i, node in enumerate(asset.nodes):
        check(node.mesh_index, len(asset.meshes), f"nodes[{i}].mesh")
        for child in node.children:
            check(child, len(asset.nodes), f"nodes[{i}].children")
    for i, scene in enumerate(asset.scenes):
        for node_index in scene.node_indices:
            check(node_index, len(asset.nodes), f"scenes[{i}].nodes")
    check(asset.default_scene, len(asset.scenes), "scene")


def _accessor_aabb(asset: Asset, accessor_index: int, cache: BufferCache) -> Aabb:
    accessor = asset.accessors[accessor_index]
    if accessor.min is not None and accessor.max is not None and len(accessor.min) == 3 and len(accessor.max) == 3:
        min_x, min_y, min_z = accessor.min
        max_x, max_y, max_z = accessor.max
        return Aabb((min_x, min_y, min_z), (max_x, max_y, max_z))
    if accessor.type is not AccessorType.VEC3:
        raise GltfError(Error.INVALID_GLTF, f"POSITION accessor {accessor_index} is {accessor.type.value}, expected VEC3")

    return Aabb.from_points((float(x), float(y), float(z)) for x, y, z in read_accessor(asset, accessor_index, cache))


def compute_scene_bounds(asset: Asset, cache: BufferCache, scene_index: int | None = None) -> Aabb:
    """World-space bounds of every POSITION attribute reachable from a scene."""
    accessor_aabb_cache: dict[int, Aabb] = {}

    world_aabb = Aabb.empty()
    for node_index, world_matrix in iterate_scene_nodes(asset, scene_index):
        mesh_index = asset.nodes[node_index].mesh_index
        if mesh_index is None:
            continue
        if not (0 <= mesh_index < len(asset.meshes)):
            raise GltfError(Error.INVALID_GLTF, f"Mesh index out of range: {mesh_index}")

        for primitive in asset.meshes[mesh_index].primitives:
            position = primitive.attributes.get("POSITION")
            if position is None:
                continue
            if not (0 <= position < len(asset.accessors)):
                raise GltfError(Error.INVALID_GLTF, f"Accessor index out of range: {position}")
            if position not in accessor_aabb_cache:
                accessor_aabb_cache[position] = _accessor_aabb(asset, position, cache)
            local_aabb = accessor_aabb_cache[position]
            if local_aabb.is_empty():
                continue
            world_aabb = world_aabb.union(Aabb.from_points(mat4_transform_point(world_matrix, c) for c in local_aabb.corners()))

    return world_aabb

from __future__ import annotations

from typing import Iterable

from .types import TRS, Node, TransformMatrix

Mat4 = list[float]


def mat4_identity() -> Mat4:
    return [1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0]


def mat4_multiply(a: Mat4, b: Mat4) -> Mat4:
    # out[col][row] = sum over k of a[k][row] * b[col][k], columns stored contiguously.
    return [sum(a[k * 4 + row] * b[col * 4 + k] for k in range(4)) for col in range(4) for row in range(4)]


def mat4_translation(t: Iterable[float]) -> Mat4:
    m = mat4_identity()
    m[12], m[13], m[14] = t
    return m


def mat4_scale(s: Iterable[float]) -> Mat4:
    m = mat4_identity()
    m[0], m[5], m[10] = s
    return m


def mat4_rotation_from_quaternion(q: Iterable[float]) -> Mat4:
    x, y, z, w = q

    xx = x * x
    yy = y * y
    zz = z * z
    xy = x * y
    xz = x * z
    yz = y * z
    wx = w * x
    wy = w * y
    wz = w * z

    # Column-major: each group of four is one column.
    return [
        1 - 2 * (yy + zz),
        2 * (xy + wz),
        2 * (xz - wy),
        0.0,
        2 * (xy - wz),
        1 - 2 * (xx + zz),
        2 * (yz + wx),
        0.0,
        2 * (xz + wy),
        2 * (yz - wx),
        1 - 2 * (xx + yy),
        0.0,
        0.0,
        0.0,
        0.0,
        1.0,
    ]


def mat4_from_trs(trs: TRS) -> Mat4:
    t = mat4_translation(trs.translation)
    r = mat4_rotation_from_quaternion(trs.rotation)
    s = mat4_scale(trs.scale)
    return mat4_multiply(t, mat4_multiply(r, s))


def node_local_matrix(node: Node) -> Mat4:
    transform = node.transform
    if isinstance(transform, TransformMatrix):
        return list(transform.values)
    return mat4_from_trs(transform)


def mat4_transform_point(m: Mat4, p: tuple[float, float, float]) -> tuple[float, float, float]:
    x, y, z = p
    tx = m[0] * x + m[4] * y + m[8] * z + m[12]
    ty = m[1] * x + m[5] * y + m[9] * z + m[13]
    tz = m[2] * x + m[6] * y + m[10] * z + m[14]
    tw = m[3] * x + m[7] * y + m[11] * z + m[15]
    if tw not in (0.0, 1.0):
        tx /= tw
        ty /= tw
        tz /= tw
    return (tx, ty, tz)

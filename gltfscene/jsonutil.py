"""Typed field lookup over decoded JSON objects.

A missing key is never an error here; ``required_*`` turn absence into one.
A present key with the wrong JSON type always is.
"""

from __future__ import annotations

import json
import json.decoder
import json.scanner
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from .errors import Error, GltfError


_key_scanner_lock = threading.Lock()


@contextmanager
def _python_key_scanner() -> Iterator[None]:
    # JSONObject decodes keys with the module-level scanstring, which is the C one.
    with _key_scanner_lock:
        saved = json.decoder.scanstring
        json.decoder.scanstring = json.decoder.py_scanstring
        try:
            yield
        finally:
            json.decoder.scanstring = saved


def loads(text: str, *, portable: bool = False) -> Any:
    if not portable:
        return json.loads(text)
    decoder = json.JSONDecoder()
    decoder.parse_string = json.decoder.py_scanstring
    decoder.scan_once = json.scanner.py_make_scanner(decoder)
    with _python_key_scanner():
        return decoder.decode(text)


def is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _invalid(where: str, key: str, expected: str) -> GltfError:
    return GltfError(Error.INVALID_GLTF, f"{where}.{key} must be {expected}")


def optional_uint(obj: dict[str, Any], key: str, where: str) -> int | None:
    if key not in obj:
        return None
    value = obj[key]
    if not is_uint(value):
        raise _invalid(where, key, "a non-negative integer")
    return value


def required_uint(obj: dict[str, Any], key: str, where: str) -> int:
    value = optional_uint(obj, key, where)
    if value is None:
        raise GltfError(Error.INVALID_GLTF, f"{where}.{key} is required")
    return value


def optional_string(obj: dict[str, Any], key: str, where: str) -> str | None:
    if key not in obj:
        return None
    value = obj[key]
    if not isinstance(value, str):
        raise _invalid(where, key, "a string")
    return value


def required_string(obj: dict[str, Any], key: str, where: str) -> str:
    value = optional_string(obj, key, where)
    if value is None:
        raise GltfError(Error.INVALID_GLTF, f"{where}.{key} is required")
    return value


def optional_bool(obj: dict[str, Any], key: str, where: str) -> bool | None:
    if key not in obj:
        return None
    value = obj[key]
    if not isinstance(value, bool):
        raise _invalid(where, key, "a boolean")
    return value


def optional_object(obj: dict[str, Any], key: str, where: str) -> dict[str, Any] | None:
    if key not in obj:
        return None
    value = obj[key]
    if not isinstance(value, dict):
        raise _invalid(where, key, "an object")
    return value


def optional_array(obj: dict[str, Any], key: str, where: str) -> list[Any] | None:
    if key not in obj:
        return None
    value = obj[key]
    if not isinstance(value, list):
        raise _invalid(where, key, "an array")
    return value


def optional_number_list(obj: dict[str, Any], key: str, where: str) -> list[float] | None:
    values = optional_array(obj, key, where)
    if values is None:
        return None
    if not all(is_number(v) for v in values):
        raise _invalid(where, key, "an array of numbers")
    return [float(v) for v in values]


def uint_list(obj: dict[str, Any], key: str, where: str) -> list[int]:
    values = optional_array(obj, key, where)
    if values is None:
        return []
    for i, value in enumerate(values):
        if not is_uint(value):
            raise GltfError(Error.INVALID_GLTF, f"{where}.{key}[{i}] must be a non-negative integer")
    return list(values)


def string_list(obj: dict[str, Any], key: str, where: str) -> list[str]:
    values = optional_array(obj, key, where)
    if values is None:
        return []
    for i, value in enumerate(values):
        if not isinstance(value, str):
            raise GltfError(Error.INVALID_GLTF, f"{where}.{key}[{i}] must be a string")
    return list(values)

from __future__ import annotations

import enum


class Error(enum.IntEnum):
    NONE = 0
    INVALID_PATH = 1
    INVALID_JSON = 2
    INVALID_GLTF = 3
    INVALID_OR_MISSING_ASSET_FIELD = 4
    INVALID_GLB = 5
    UNSUPPORTED_VERSION = 6
    MISSING_EXTENSIONS = 7
    MISSING_EXTERNAL_BUFFER = 8


ERROR_MESSAGES: dict[Error, str] = {
    Error.NONE: "",
    Error.INVALID_PATH: "The glTF directory passed to load is invalid.",
    Error.INVALID_JSON: "The input is not valid JSON.",
    Error.INVALID_GLTF: "The glTF is either missing something or has invalid data.",
    Error.INVALID_OR_MISSING_ASSET_FIELD: "The glTF asset object is missing or invalid.",
    Error.INVALID_GLB: "The GLB container is invalid.",
    Error.UNSUPPORTED_VERSION: "The GLB container version is not supported.",
    Error.MISSING_EXTENSIONS: "The glTF requires an extension that is not enabled.",
    Error.MISSING_EXTERNAL_BUFFER: "An external buffer or image file could not be loaded.",
}


def get_error_message(error: Error) -> str:
    return ERROR_MESSAGES[Error(error)]


class GltfError(RuntimeError):
    def __init__(self, error: Error, detail: str | None = None) -> None:
        self.error = Error(error)
        self.detail = detail
        super().__init__(detail or get_error_message(self.error))

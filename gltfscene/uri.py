from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from urllib.parse import unquote

from . import codec, sources
from .errors import Error, GltfError
from .sources import DataSource, MimeType
from .types import Options

logger = logging.getLogger(__name__)

DATA_URI_SCHEME = "data:"

MIME_TYPE_BY_STRING: dict[str, MimeType] = {mime.value: mime for mime in MimeType if mime is not MimeType.NONE}

MIME_TYPE_BY_SUFFIX: dict[str, MimeType] = {
    ".jpg": MimeType.JPEG,
    ".jpeg": MimeType.JPEG,
    ".png": MimeType.PNG,
    ".ktx2": MimeType.KTX2,
    ".dds": MimeType.DDS,
    ".bin": MimeType.OCTET_STREAM,
}


def get_mime_type_from_string(mime: str) -> MimeType:
    return MIME_TYPE_BY_STRING.get(mime, MimeType.NONE)


def guess_mime_type_from_path(path: str | Path) -> MimeType:
    return MIME_TYPE_BY_SUFFIX.get(PurePosixPath(str(path)).suffix.lower(), MimeType.NONE)


def is_data_uri(uri: str) -> bool:
    return uri.startswith(DATA_URI_SCHEME)


def decode_data_uri(uri: str, *, portable: bool = False) -> sources.Array:
    separator = uri.find(";")
    if separator == -1:
        raise GltfError(Error.INVALID_GLTF, "Data URI has no encoding")
    encoding_end = uri.find(",", separator + 1)
    if encoding_end == -1:
        raise GltfError(Error.INVALID_GLTF, "Data URI has no payload")

    encoding = uri[separator + 1 : encoding_end]
    if encoding != "base64":
        raise GltfError(Error.INVALID_GLTF, f"Unsupported data URI encoding: {encoding!r}")

    mime_type = get_mime_type_from_string(uri[len(DATA_URI_SCHEME) : separator])
    payload = uri[encoding_end + 1 :]
    logger.debug("decoding %d base64 characters (%s path)", len(payload), "portable" if portable else "binascii")
    try:
        data = codec.decode_with(payload, portable=portable)
    except ValueError as exc:
        raise GltfError(Error.INVALID_GLTF, f"Invalid base64 payload in data URI: {exc}") from exc
    return sources.Array(bytes=data, mime_type=mime_type)


def decode_uri(uri: str, directory: Path, options: Options = Options.NONE) -> DataSource:
    """Classify ``uri`` into an owned byte array or a file path.

    Files are not touched here; whoever needs the bytes reads them.

    The path is not confined to ``directory``: ``..`` segments and absolute
    paths are kept as written, so with ``LOAD_EXTERNAL_FILE_BUFFERS`` or
    ``LOAD_EXTERNAL_FILE_IMAGES`` an untrusted document can read any file
    the process can. Check ``FilePath.path`` before loading such documents.
    """
    if is_data_uri(uri):
        return decode_data_uri(uri, portable=bool(options & Options.FORCE_PORTABLE_DECODING))

    relative = unquote(uri)
    return sources.FilePath(path=directory / relative, mime_type=guess_mime_type_from_path(relative))

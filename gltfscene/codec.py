"""Base64 decoding for data URIs.

``decode`` goes through ``binascii`` directly; ``fallback_decode`` goes through
the ``base64`` module's validating decoder and is selected by
``Options.FORCE_PORTABLE_DECODING``. Both reject characters outside the
standard alphabet and bad padding by raising ``binascii.Error``.
"""

from __future__ import annotations

import base64
import binascii


def decode(encoded: str | bytes) -> bytes:
    return binascii.a2b_base64(encoded, strict_mode=True)


def fallback_decode(encoded: str | bytes) -> bytes:
    return base64.b64decode(encoded, validate=True)


def decode_with(encoded: str | bytes, *, portable: bool) -> bytes:
    if portable:
        return fallback_decode(encoded)
    return decode(encoded)

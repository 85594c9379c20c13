"""Text/binary conversions used to build and check HMAC signatures."""

from __future__ import annotations

import re

_HEX_RE = re.compile(r"\A(?:[0-9a-fA-F]{2})*\Z")


def utf8(text: str) -> bytes:
    return text.encode("utf-8")


def hex_bytes(text: str) -> bytes | None:
    """Decode a hex string, or return None if it is not strictly pairs of hex digits.

    ``bytes.fromhex`` tolerates embedded whitespace, so the shape is checked first.
    """
    if not _HEX_RE.match(text):
        return None
    return bytes.fromhex(text)

"""Source offset encoding.

The stream reports an opaque position (LCR position / LSN) as raw bytes.
It is stored as RFC 4648 base32hex text, which keeps the lexical order of
equal-length positions identical to their byte order. Resumption must
compare the stored text exactly.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from xstream_cdc.changes.models import POSITION_KEY
from xstream_cdc.errors import ValidationError


def encode_position(position: bytes) -> str:
    """Encode raw position bytes as upper-case, padded base32hex."""
    return base64.b32hexencode(bytes(position)).decode("ascii")


def decode_position(text: str) -> bytes:
    """Decode a stored base32hex position back into its raw bytes."""
    try:
        return base64.b32hexdecode(text.encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        msg = f"Invalid position '{text}': {exc}"
        raise ValidationError(msg) from exc


def source_offset(position: bytes) -> Mapping[str, Any]:
    """Build the source offset mapping for a record position."""
    return MappingProxyType({POSITION_KEY: encode_position(position)})


def position_from_offset(offset: Mapping[str, Any] | None) -> bytes | None:
    """Return the raw position stored in *offset*, or None if nothing is stored."""
    if not offset or offset.get(POSITION_KEY) is None:
        return None
    return decode_position(str(offset[POSITION_KEY]))

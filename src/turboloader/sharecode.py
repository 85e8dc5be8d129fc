"""
Share Code Decoder for PolyTrack Tracks

Recognizes the textual track formats players exchange and extracts the
embedded display name without touching track geometry:

- ``PolyTrack...``  native storage payload, stored verbatim
- ``v3...``         share code; name length and name packed with the
                    PolyTrack alphabet codec
- ``v1n...``        share code; base64url name length, percent-encoded name
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote

from turboloader import codec
from turboloader.models import NATIVE_PAYLOAD_PREFIX, TrackRecord

logger = logging.getLogger(__name__)

V3_PREFIX = "v3"
V2_PREFIX = "v2"
V1N_PREFIX = "v1n"

# Anything shorter cannot be a real track
MIN_TRACK_DATA_LENGTH = 10

_WHITESPACE = re.compile(r"\s+")
_BAD_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class TrackFormat(Enum):
    NATIVE_PAYLOAD = "native"
    SHARE_CODE_V3 = "v3"
    SHARE_CODE_V1N = "v1n"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ShareCodeInfo:
    """Decoded share code metadata."""

    display_name: str
    share_code: str

    def __repr__(self) -> str:
        return f"ShareCodeInfo(display_name={self.display_name!r})"


def classify(text: str) -> TrackFormat:
    """Determine the track format from the literal prefix."""
    if text.startswith(NATIVE_PAYLOAD_PREFIX):
        return TrackFormat.NATIVE_PAYLOAD
    if text.startswith(V3_PREFIX) and not text.startswith(V2_PREFIX):
        return TrackFormat.SHARE_CODE_V3
    if text.startswith(V1N_PREFIX):
        return TrackFormat.SHARE_CODE_V1N
    return TrackFormat.UNRECOGNIZED


def percent_decode(text: str) -> str:
    """
    Strict percent-decoding.

    Raises:
        ValueError: On a malformed escape or an escape sequence that is not UTF-8
    """
    if _BAD_PERCENT_ESCAPE.search(text):
        raise ValueError(f"Malformed percent escape in {text!r}")
    return unquote(text, errors="strict")


def _base64url_decode(text: str) -> bytes | None:
    padded = text.replace("-", "+").replace("_", "/")
    padded += "=" * (-len(padded) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        return None


def decode_v3(share_code: str) -> ShareCodeInfo | None:
    """
    Decode the display name from a v3 share code.

    Layout: ``v3`` + 2 chars (name length byte) + ceil(4L/3) chars (name
    bytes) + track data. The track data is left untouched.

    Returns:
        ShareCodeInfo, or None if the name cannot be extracted
    """
    if classify(share_code) is not TrackFormat.SHARE_CODE_V3:
        return None

    length_chars = share_code[2:4]
    length_bytes = codec.try_decode(length_chars)
    if not length_bytes:
        logger.debug(f"v3 decode: bad name length field {length_chars!r}")
        return None

    name_len = length_bytes[0]
    encoded_len = -(-name_len * 4 // 3)
    name_chars = share_code[4 : 4 + encoded_len]

    name_bytes = codec.try_decode(name_chars)
    if name_bytes is None:
        logger.debug(f"v3 decode: bad name field {name_chars!r}")
        return None

    # Invalid UTF-8 becomes U+FFFD, as the game's TextDecoder does
    name = name_bytes[:name_len].decode("utf-8", errors="replace")
    return ShareCodeInfo(display_name=name, share_code=share_code)


def decode_v1n(share_code: str) -> ShareCodeInfo | None:
    """
    Decode the display name from a v1n share code.

    Layout: ``v1n`` + 2 base64url chars (length of encoded name) +
    percent-encoded name + track data.

    Example:
        >>> decode_v1n("v1nEgwhirled%20up%20boxBQAB").display_name
        'whirled up box'
    """
    if classify(share_code) is not TrackFormat.SHARE_CODE_V1N:
        return None

    length_bytes = _base64url_decode(share_code[3:5])
    if not length_bytes:
        return None

    name_len = length_bytes[0]
    try:
        name = percent_decode(share_code[5 : 5 + name_len])
    except ValueError as e:
        logger.debug(f"v1n decode: {e}")
        return None

    return ShareCodeInfo(display_name=name, share_code=share_code)


def extract_track_name(share_code: str) -> str | None:
    """Extract the display name from any share code format."""
    fmt = classify(share_code)
    if fmt is TrackFormat.SHARE_CODE_V3:
        info = decode_v3(share_code)
    elif fmt is TrackFormat.SHARE_CODE_V1N:
        info = decode_v1n(share_code)
    else:
        return None
    return info.display_name if info else None


def is_valid_track_data(data: str | None) -> bool:
    """Check whether a string looks like a native payload or a share code."""
    if not data or len(data) < MIN_TRACK_DATA_LENGTH:
        return False
    return classify(data) is not TrackFormat.UNRECOGNIZED


def process_track_data(raw: str | None) -> TrackRecord | None:
    """
    Turn a candidate string into a TrackRecord.

    Whitespace is removed first, the same way the game cleans pasted codes.
    A share code whose name cannot be extracted is still returned, with
    ``display_name`` left as None.

    Returns:
        TrackRecord, or None if the string is not track data
    """
    if not raw or len(raw) < MIN_TRACK_DATA_LENGTH:
        return None

    clean = _WHITESPACE.sub("", raw)
    fmt = classify(clean)

    if fmt is TrackFormat.NATIVE_PAYLOAD:
        return TrackRecord(raw_payload=clean)

    if fmt in (TrackFormat.SHARE_CODE_V3, TrackFormat.SHARE_CODE_V1N):
        return TrackRecord(display_name=extract_track_name(clean), share_code=clean)

    return None

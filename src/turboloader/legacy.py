"""
Legacy format conversion.

Older game builds only load ``PolyTrack1`` payloads. Newer payloads carry a
different version tag (e.g. ``PolyTrack24pdr``) in front of the encoded
body; swapping the tag for ``1`` is enough for those builds to accept them.

The tag is taken to be lowercase letters and digits, and the body to start
at the first uppercase letter after ``PolyTrack``. This is a heuristic, not
a verified grammar of the payload format.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from turboloader.models import NATIVE_PAYLOAD_PREFIX, TrackRecord

logger = logging.getLogger(__name__)

BASELINE_TAG = "1"

_TAG = re.compile(r"[a-z0-9]*")
_BODY_START = re.compile(r"[A-Z]")


def version_tag(payload: str) -> str | None:
    """Return the version tag of a native payload, or None for other strings."""
    if not payload.startswith(NATIVE_PAYLOAD_PREFIX):
        return None
    return _TAG.match(payload, len(NATIVE_PAYLOAD_PREFIX)).group(0)


def to_baseline(payload: str | None) -> str | None:
    """
    Rewrite a native payload's version tag to the baseline tag.

    Returns:
        The converted payload, or None if the payload is already baseline,
        is not a native payload, or has no recognizable body
    """
    if not payload:
        return None

    tag = version_tag(payload)
    if tag is None or tag == BASELINE_TAG:
        return None

    rest = payload[len(NATIVE_PAYLOAD_PREFIX):]
    body = _BODY_START.search(rest)
    if body is None or body.start() == 0:
        return None

    return NATIVE_PAYLOAD_PREFIX + BASELINE_TAG + rest[body.start():]


def convert_records(records: list[TrackRecord]) -> tuple[list[TrackRecord], int]:
    """
    Apply baseline conversion to every native payload in a batch.

    Records that cannot be converted are passed through unchanged.

    Returns:
        (converted records, number of payloads rewritten)
    """
    converted = []
    count = 0

    for record in records:
        new_payload = to_baseline(record.raw_payload) if record.is_native else None
        if new_payload is not None:
            converted.append(replace(record, raw_payload=new_payload))
            count += 1
        else:
            converted.append(record)

    if count:
        logger.info(f"Converted {count} track(s) to {NATIVE_PAYLOAD_PREFIX}{BASELINE_TAG} format")
    return converted, count

"""
Storage Schema Detection

PolyTrack has changed how it lays out tracks in browser storage across
releases: the key prefix carries a version number, track names may or may
not be percent-encoded in the key, and the value is either the bare payload
or a JSON envelope with a ``data`` field plus metadata.

detect_schema() infers the active convention from the entries a store
already holds, so imported tracks look exactly like ones the game saved.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

from turboloader.sharecode import percent_decode

logger = logging.getLogger(__name__)

KEY_NAMESPACE = "polytrack"
DEFAULT_VERSION = 4
DEFAULT_ENVIRONMENT = "prod"

TRACK_PREFIX_PATTERN = re.compile(rf"^{KEY_NAMESPACE}_v(\d+)_([a-z0-9]+)_track_")
VERSIONED_KEY_PATTERN = re.compile(rf"^{KEY_NAMESPACE}_v(\d+)_")

DATA_FIELD = "data"
TIMESTAMP_FIELD = "saveTime"

# Same set of characters JavaScript's encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "!'()*"


class NameEncoding(Enum):
    IDENTITY = "identity"
    PERCENT = "percent"


class PayloadMode(Enum):
    JSON = "json"
    RAW = "raw"


def build_track_prefix(version: int, environment: str = DEFAULT_ENVIRONMENT) -> str:
    return f"{KEY_NAMESPACE}_v{version}_{environment}_track_"


@dataclass(frozen=True)
class StorageSchemaConfig:
    """How track entries are named and wrapped in the store."""

    key_prefix: str
    name_encoding: NameEncoding = NameEncoding.IDENTITY
    payload_mode: PayloadMode = PayloadMode.JSON
    payload_template: dict[str, Any] | None = None

    def encode_name(self, name: str) -> str:
        if self.name_encoding is NameEncoding.PERCENT:
            return quote(name, safe=_URI_COMPONENT_SAFE)
        return name

    def decode_name(self, encoded: str) -> str:
        if self.name_encoding is NameEncoding.PERCENT:
            try:
                return percent_decode(encoded)
            except ValueError:
                logger.warning(f"Stored track name is not valid percent-encoding: {encoded!r}")
                return encoded
        return encoded

    def key_for(self, name: str) -> str:
        return self.key_prefix + self.encode_name(name)

    def owns_key(self, key: str) -> bool:
        return key.startswith(self.key_prefix)

    def name_from_key(self, key: str) -> str:
        return self.decode_name(key[len(self.key_prefix):])

    def wrap_payload(self, payload: str, now_ms: int) -> str:
        """Build the stored value for a payload."""
        if self.payload_mode is PayloadMode.RAW:
            return payload

        envelope = copy.copy(self.payload_template) if self.payload_template else {}
        envelope[DATA_FIELD] = payload
        envelope[TIMESTAMP_FIELD] = now_ms
        return json.dumps(envelope)

    def unwrap_payload(self, value: str) -> str:
        """Extract the payload from a stored value, whatever envelope it uses."""
        envelope = _parse_envelope(value)
        if envelope is not None:
            return str(envelope[DATA_FIELD])
        return value

    def describe(self) -> dict[str, Any]:
        return {
            "key_prefix": self.key_prefix,
            "name_encoding": self.name_encoding.value,
            "payload_mode": self.payload_mode.value,
            "payload_template_fields": sorted(self.payload_template) if self.payload_template else [],
        }


def _parse_envelope(value: str | None) -> dict[str, Any] | None:
    if not value:
        return None
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return None
    if isinstance(parsed, dict) and DATA_FIELD in parsed:
        return parsed
    return None


def _detect_name_encoding(suffix: str) -> NameEncoding:
    try:
        decoded = percent_decode(suffix)
    except ValueError:
        return NameEncoding.IDENTITY
    return NameEncoding.PERCENT if decoded != suffix else NameEncoding.IDENTITY


def detect_schema(
    snapshot: Iterable[tuple[str, str | None]],
    default_version: int = DEFAULT_VERSION,
) -> StorageSchemaConfig:
    """
    Infer the storage convention from existing store entries.

    Args:
        snapshot: Ordered (key, value) pairs from the store
        default_version: Key version used when the store holds no versioned keys

    Returns:
        StorageSchemaConfig describing the active convention
    """
    prefix_counts: Counter[str] = Counter()
    first_entry: dict[str, tuple[str, str | None]] = {}
    max_version: int | None = None

    for key, value in snapshot:
        match = TRACK_PREFIX_PATTERN.match(key)
        if match:
            prefix = match.group(0)
            prefix_counts[prefix] += 1
            first_entry.setdefault(prefix, (key, value))

        version_match = VERSIONED_KEY_PATTERN.match(key)
        if version_match:
            version = int(version_match.group(1))
            if max_version is None or version > max_version:
                max_version = version

    if not prefix_counts:
        version = max_version if max_version is not None else default_version
        prefix = build_track_prefix(version)
        logger.info(f"No track entries found; using prefix {prefix}")
        return StorageSchemaConfig(key_prefix=prefix)

    # Counter.most_common keeps first-encountered order among equal counts
    prefix, count = prefix_counts.most_common(1)[0]
    key, value = first_entry[prefix]

    name_encoding = _detect_name_encoding(key[len(prefix):])
    envelope = _parse_envelope(value)
    if envelope is not None:
        payload_mode = PayloadMode.JSON
    else:
        payload_mode = PayloadMode.RAW

    schema = StorageSchemaConfig(
        key_prefix=prefix,
        name_encoding=name_encoding,
        payload_mode=payload_mode,
        payload_template=envelope,
    )
    logger.info(
        f"Detected storage schema: prefix={prefix} ({count} tracks), "
        f"names={name_encoding.value}, payload={payload_mode.value}"
    )
    return schema


def detect_store_schema(store, default_version: int = DEFAULT_VERSION) -> StorageSchemaConfig:
    """Run detect_schema over a KeyValueStore."""
    return detect_schema(((key, store.get(key)) for key in store.keys()), default_version)

"""
Export Functionality for TurboLoader

- Track list export: every stored track as ``name | payload`` lines, in the
  same format parse_track_text() reads back
- Failed tracks report: one block per record the import engine rejected
- Bulk delete of every track entry under the detected prefix
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from turboloader.models import FailedTrack
from turboloader.schema import StorageSchemaConfig
from turboloader.store import KeyValueStore
from turboloader.tracklist import format_named_line

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


@dataclass
class StoredTrack:
    name: str
    payload: str
    key: str


def list_stored_tracks(store: KeyValueStore, schema: StorageSchemaConfig) -> list[StoredTrack]:
    """Read every track entry under the schema's prefix, in store order."""
    tracks = []
    for key in store.keys():
        if not schema.owns_key(key):
            continue
        value = store.get(key)
        if value is None:
            continue
        tracks.append(StoredTrack(name=schema.name_from_key(key), payload=schema.unwrap_payload(value), key=key))
    return tracks


def export_tracks_text(tracks: list[StoredTrack], exported_at: datetime | None = None) -> str:
    """
    Render stored tracks as a track list document.

    Names that would not read back as written are quoted (see
    format_named_line).
    """
    exported_at = exported_at or datetime.now()
    lines = [
        f"# PolyTrack Track Export - {exported_at.isoformat(timespec='seconds')}",
        f"# Total Tracks: {len(tracks)}",
        "# Format: Track Name | Track Data",
        "",
    ]
    lines.extend(format_named_line(track.name, track.payload) for track in tracks)
    return "\n".join(lines) + "\n"


def timestamped_path(
    directory: Path, stem: str, suffix: str = ".txt", timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
) -> Path:
    return Path(directory) / f"{stem}_{datetime.now().strftime(timestamp_format)}{suffix}"


def write_export(store: KeyValueStore, schema: StorageSchemaConfig, output_path: Path) -> int:
    """
    Export all stored tracks to a file.

    Returns:
        Number of tracks written
    """
    tracks = list_stored_tracks(store, schema)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(export_tracks_text(tracks), encoding="utf-8")
    logger.info(f"Exported {len(tracks)} track(s) to {output_path}")
    return len(tracks)


def format_failed_report(failed_tracks: list[FailedTrack], generated_at: datetime | None = None) -> str:
    """Render the failed tracks log."""
    generated_at = generated_at or datetime.now()
    parts = [
        f"# PolyTrack Failed Tracks Log - {generated_at.strftime('%Y-%m-%d %H:%M:%S')}\n",
        f"# Total Failed: {len(failed_tracks)}\n",
        "# These tracks could not be imported\n\n",
    ]

    for index, track in enumerate(failed_tracks, start=1):
        parts.append(f"## Track {index}: {track.name}\n")
        parts.append(f"Reason: {track.reason}\n")
        parts.append(f"Data: {track.data}\n\n")

    return "".join(parts)


def write_failed_report(failed_tracks: list[FailedTrack], output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(format_failed_report(failed_tracks), encoding="utf-8")
    logger.info(f"Wrote failed tracks log ({len(failed_tracks)} entries) to {output_path}")
    return output_path


def delete_all_tracks(store: KeyValueStore, schema: StorageSchemaConfig) -> int:
    """
    Remove every track entry under the schema's prefix.

    Returns:
        Number of entries removed
    """
    keys = [key for key in store.keys() if schema.owns_key(key)]
    for key in keys:
        store.remove(key)
    logger.info(f"Deleted {len(keys)} track(s) under {schema.key_prefix}")
    return len(keys)

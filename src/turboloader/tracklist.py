"""
Track list text format.

One track per line, either ``Track Name | <payload or share code>`` or a bare
payload/share code. Lines starting with ``#`` or ``//`` are comments and
blank lines are ignored. Bare share codes get their name from the code
itself; anything else without a name is called ``Imported Track <n>``.

A name that would not read back as written (empty, padded, starting like a
comment or a quote, or containing ``|``) is written as a JSON string:
``"#1 Speedway" | PolyTrack1...``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from turboloader.models import GENERATED_NAME_TEMPLATE, TrackRecord
from turboloader.sharecode import is_valid_track_data, process_track_data

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("#", "//")
NAME_SEPARATOR = "|"
NAME_QUOTE = '"'
SUPPORTED_SUFFIXES = (".txt", ".csv")

_name_decoder = json.JSONDecoder()


@dataclass
class ParsedTrackList:
    records: list[TrackRecord] = field(default_factory=list)
    valid_count: int = 0
    invalid_count: int = 0
    share_code_count: int = 0
    notes: list[str] = field(default_factory=list)

    def extend(self, other: ParsedTrackList) -> None:
        self.records.extend(other.records)
        self.valid_count += other.valid_count
        self.invalid_count += other.invalid_count
        self.share_code_count += other.share_code_count
        self.notes.extend(other.notes)


def _needs_quoting(name: str) -> bool:
    return (
        not name
        or name != name.strip()
        or name.startswith(COMMENT_PREFIXES + (NAME_QUOTE,))
        or NAME_SEPARATOR in name
    )


def format_named_line(name: str, data: str) -> str:
    """Render one ``name | data`` line that parse_track_text() reads back unchanged."""
    if _needs_quoting(name):
        name = json.dumps(name, ensure_ascii=False)
    return f"{name} {NAME_SEPARATOR} {data}"


def _split_quoted(line: str) -> tuple[str, str] | None:
    try:
        name, end = _name_decoder.raw_decode(line)
    except json.JSONDecodeError:
        return None
    rest = line[end:].lstrip()
    if not isinstance(name, str) or not rest.startswith(NAME_SEPARATOR):
        return None
    return name, rest[len(NAME_SEPARATOR):].strip()


def _parse_named_line(line: str) -> TrackRecord | None:
    split = _split_quoted(line) if line.startswith(NAME_QUOTE) else None
    if split is None:
        name, _, data = line.partition(NAME_SEPARATOR)
        name = name.strip()
        if not name:
            return None
        split = name, data.strip()

    name, data = split
    if not is_valid_track_data(data):
        return None

    record = process_track_data(data)
    if record is None:
        return None
    record.display_name = name
    return record


def parse_track_text(content: str) -> ParsedTrackList:
    """
    Parse a track list document into TrackRecords.

    Args:
        content: Text content of a track list file

    Returns:
        ParsedTrackList with the records and per-line counts
    """
    parsed = ParsedTrackList()

    for line_no, raw_line in enumerate(content.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue

        record = None
        if NAME_SEPARATOR in line:
            record = _parse_named_line(line)
            if record is not None:
                parsed.notes.append(f'Line {line_no}: "{record.display_name}" (pipe format)')

        if record is None:
            if not is_valid_track_data(line):
                parsed.invalid_count += 1
                parsed.notes.append(f"Line {line_no}: skipped - not recognized as track data")
                continue

            record = process_track_data(line)
            if record is None:
                parsed.invalid_count += 1
                parsed.notes.append(f"Line {line_no}: failed to parse track data")
                continue

            if record.display_name:
                parsed.notes.append(f'Line {line_no}: "{record.display_name}" (extracted from share code)')
            else:
                record.display_name = GENERATED_NAME_TEMPLATE.format(n=parsed.valid_count + 1)
                parsed.notes.append(f'Line {line_no}: using generated name "{record.display_name}"')

        parsed.records.append(record)
        parsed.valid_count += 1
        if record.share_code:
            parsed.share_code_count += 1

    logger.debug(
        f"Parsed {parsed.valid_count} track(s), {parsed.invalid_count} line(s) skipped, "
        f"{parsed.share_code_count} share code(s)"
    )
    return parsed


def parse_track_files(paths: list[Path]) -> ParsedTrackList:
    """
    Parse several track list files and combine their records.

    Files without a .txt or .csv suffix are skipped with a warning.

    Raises:
        OSError: If a file cannot be read
    """
    combined = ParsedTrackList()

    for path in paths:
        path = Path(path)
        if path.suffix.lower() not in SUPPORTED_SUFFIXES:
            logger.warning(f"Skipping {path.name}: only .txt and .csv files are supported")
            combined.notes.append(f"{path.name}: skipped (unsupported file type)")
            continue

        logger.info(f"Processing {path.name}")
        parsed = parse_track_text(path.read_text(encoding="utf-8", errors="replace"))
        combined.notes.extend(f"{path.name}: {note}" for note in parsed.notes)
        parsed.notes = []
        combined.extend(parsed)

    return combined

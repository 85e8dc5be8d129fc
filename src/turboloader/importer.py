"""
Track Import Engine

Merges a batch of TrackRecords into a key/value store using the detected
storage schema and a collision policy (skip, overwrite or rename).

Records are processed strictly in order; each one is fully written before
the next begins, so rename collisions see tracks written earlier in the
same batch. Failures are recorded per record and never abort the batch.
There is no rollback: writes made before a failure stay in the store.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from turboloader.models import (
    GENERATED_NAME_TEMPLATE,
    CollisionPolicy,
    FailedTrack,
    ImportResult,
    ImportStatus,
    ProgressSink,
    TrackOutcome,
    TrackRecord,
)
from turboloader.schema import StorageSchemaConfig
from turboloader.store import KeyValueStore

logger = logging.getLogger(__name__)

MAX_RENAME_ATTEMPTS = 1000


class NameExhaustionError(RuntimeError):
    """No free ``name (n)`` variant within the attempt limit."""


def unique_name(
    base_name: str,
    exists: Callable[[str], bool],
    max_attempts: int = MAX_RENAME_ATTEMPTS,
) -> str:
    """
    Find the first ``"base_name (n)"`` (n = 1, 2, ...) that does not exist.

    Raises:
        NameExhaustionError: If every candidate up to ``max_attempts`` is taken
    """
    for counter in range(1, max_attempts + 1):
        candidate = f"{base_name} ({counter})"
        if not exists(candidate):
            return candidate
    raise NameExhaustionError(f'Could not generate unique name for "{base_name}"')


def _record_name(record: TrackRecord, index: int) -> str:
    # An empty name is kept; it maps to the bare key prefix
    if record.display_name is None:
        return GENERATED_NAME_TEMPLATE.format(n=index)
    return record.display_name


class ImportEngine:
    """
    Applies a collision policy across a batch of tracks.

    Args:
        store: Target KeyValueStore
        schema: Storage convention used to build keys and values
        progress: Optional sink called after every record
        clock: Returns the current time in seconds (used for ``saveTime``)
        write_delay: Seconds to wait between successive records
    """

    def __init__(
        self,
        store: KeyValueStore,
        schema: StorageSchemaConfig,
        progress: ProgressSink | None = None,
        clock: Callable[[], float] = time.time,
        write_delay: float = 0.0,
    ):
        self.store = store
        self.schema = schema
        self.progress = progress
        self.clock = clock
        self.write_delay = write_delay

    def exists(self, name: str) -> bool:
        return self.store.has(self.schema.key_for(name))

    def _notify(self, current: int, total: int, name: str, status: ImportStatus) -> None:
        if self.progress is None:
            return
        try:
            self.progress(current, total, name, status)
        except Exception as e:
            logger.debug(f"Progress sink failed for {name!r}: {e}")

    def _resolve_payload(self, record: TrackRecord, final_name: str, result: ImportResult) -> str | None:
        if record.is_native:
            return record.raw_payload
        if record.share_code:
            result.warnings.append(
                f'Track "{final_name}" stored as share code - may need manual re-import'
            )
            return record.share_code
        return None

    def _process(self, index: int, record: TrackRecord, policy: CollisionPolicy, result: ImportResult) -> TrackOutcome:
        name = _record_name(record, index)
        final_name = name
        status = ImportStatus.IMPORTED

        if self.exists(name):
            if policy is CollisionPolicy.SKIP:
                logger.info(f"Skipped existing track: {name}")
                return TrackOutcome(index, name, name, ImportStatus.SKIPPED)
            if policy is CollisionPolicy.OVERWRITE:
                status = ImportStatus.OVERWRITTEN
            else:
                final_name = unique_name(name, self.exists)
                status = ImportStatus.RENAMED

        payload = self._resolve_payload(record, final_name, result)
        if payload is None:
            reason = "No valid data" if not record.raw_payload else "Invalid track data"
            result.fail(name, record.source_data, reason)
            return TrackOutcome(index, name, name, ImportStatus.ERROR)

        value = self.schema.wrap_payload(payload, int(self.clock() * 1000))
        self.store.set(self.schema.key_for(final_name), value)
        logger.info(f"{status.value.capitalize()}: {final_name}")
        return TrackOutcome(index, name, final_name, status)

    def run(
        self,
        records: Sequence[TrackRecord],
        policy: CollisionPolicy | str,
        should_cancel: Callable[[], bool] | None = None,
    ) -> ImportResult:
        """
        Import a batch of tracks.

        Args:
            records: Tracks to import, in order
            policy: Collision policy (enum member or "skip"/"overwrite"/"rename")
            should_cancel: Checked before each record; returning True stops the
                batch and returns a partial result

        Returns:
            ImportResult with counters, messages and per-record outcomes

        Raises:
            ValueError: If the policy is invalid or records is None
        """
        if records is None:
            raise ValueError("records must be a sequence of TrackRecord, not None")
        policy = CollisionPolicy.parse(policy)

        total = len(records)
        result = ImportResult(total=total)
        logger.info(f"Importing {total} track(s) with policy={policy.value} into {self.schema.key_prefix}*")

        for i, record in enumerate(records):
            index = i + 1

            if should_cancel is not None and should_cancel():
                logger.warning(f"Import cancelled after {i} of {total} track(s)")
                result.cancelled = True
                result.total = i
                break

            try:
                outcome = self._process(index, record, policy, result)
            except Exception as e:
                name = _record_name(record, index)
                logger.error(f"Error importing {name!r}: {e}")
                result.errors.append(f'Error importing "{name}": {e}')
                result.failed_tracks.append(FailedTrack(name=name, data=record.source_data, reason=str(e)))
                outcome = TrackOutcome(index, name, name, ImportStatus.ERROR)

            result.record(outcome)
            self._notify(index, total, outcome.final_name, outcome.status)

            if self.write_delay > 0 and index < total and outcome.status is not ImportStatus.SKIPPED:
                time.sleep(self.write_delay)

        logger.info(
            f"Import finished: {result.imported} imported, {result.skipped} skipped, "
            f"{result.renamed} renamed, {result.overwritten} overwritten, {result.errored} failed"
        )
        return result


def import_tracks(
    records: Sequence[TrackRecord],
    policy: CollisionPolicy | str,
    schema: StorageSchemaConfig,
    store: KeyValueStore,
    progress: ProgressSink | None = None,
    should_cancel: Callable[[], bool] | None = None,
    write_delay: float = 0.0,
) -> ImportResult:
    """Convenience wrapper around ImportEngine.run()."""
    engine = ImportEngine(store, schema, progress=progress, write_delay=write_delay)
    return engine.run(records, policy, should_cancel=should_cancel)

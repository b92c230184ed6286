"""
Sync runner: one reconciliation pass per library.

A pass is sequential: fetch → save snapshot → build hierarchy → generate →
reconcile → apply → save status. Passes for different libraries may run
concurrently; at most one pass per library is ever in flight.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..core.connector import SourceConnector
from ..core.errors import ConfigurationError, StatusWriteError
from ..core.generator import NoteGenerator
from ..core.models import Library, RecordKind, StatusMap
from ..core.sink import VaultSink
from ..snapshot.hierarchy import Hierarchy
from ..snapshot.loader import SnapshotStore
from ..state.status_store import StatusStore
from ..sync.applier import OperationApplier
from ..sync.generation import GenerationRunner
from ..sync.reconciler import ReconcilePlan, reconcile


logger = logging.getLogger(__name__)


class SyncTrigger(str, Enum):
    """What started a pass."""
    MANUAL = "manual"
    STARTUP = "startup"
    TIMER = "timer"


class PassStatus(str, Enum):
    """Outcome of a pass."""
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SyncReport:
    """Report of one sync pass for one library."""
    library: str
    trigger: str
    dry_run: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: str = PassStatus.COMPLETED.value
    skip_reason: Optional[str] = None

    # Operation counts per kind, e.g. {"item": {"create": 2, ...}}
    operations: Dict[str, Dict[str, int]] = field(default_factory=dict)
    planned: List[str] = field(default_factory=list)

    collection_count: int = 0
    item_count: int = 0

    generator_errors: List[str] = field(default_factory=list)
    collisions: List[Dict[str, Any]] = field(default_factory=list)
    apply_errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors or self.apply_errors or self.generator_errors or self.collisions)

    @property
    def total_operations(self) -> int:
        return sum(sum(counts.values()) for counts in self.operations.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "library": self.library,
            "trigger": self.trigger,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "status": self.status,
            "skip_reason": self.skip_reason,
            "operations": self.operations,
            "planned": self.planned,
            "collection_count": self.collection_count,
            "item_count": self.item_count,
            "generator_errors": self.generator_errors,
            "collisions": self.collisions,
            "apply_errors": self.apply_errors,
            "warnings": self.warnings,
            "errors": self.errors,
        }

    def summary(self) -> str:
        """Get a human-readable summary."""
        lines = [
            f"Sync Report ({self.library}, {self.trigger})",
            f"  Status: {self.status}" + (f" ({self.skip_reason})" if self.skip_reason else ""),
            f"  Dry run: {self.dry_run}",
        ]
        if self.completed_at:
            lines.append(f"  Duration: {(self.completed_at - self.started_at).total_seconds():.1f}s")
        lines.append(f"  Records: {self.collection_count} collections, {self.item_count} items")
        for kind, counts in self.operations.items():
            detail = ", ".join(f"{name}={count}" for name, count in counts.items())
            lines.append(f"  {kind}: {detail}")
        lines.extend([
            f"  Generator errors: {len(self.generator_errors)}",
            f"  Path collisions: {len(self.collisions)}",
            f"  Apply errors: {len(self.apply_errors)}",
            f"  Warnings: {len(self.warnings)}",
            f"  Errors: {len(self.errors)}",
        ])
        return "\n".join(lines)


class SyncRunner:
    """
    Runs sync passes for Zotero libraries.

    Features:
    - In-flight guard per library (concurrent triggers are skipped)
    - Cooldown for timer triggers; manual and startup triggers bypass it
    - Concurrent passes for independent libraries
    - Status committed only for confirmed operations
    """

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        status_store: StatusStore,
        sink: VaultSink,
        generator: NoteGenerator,
        connector: Optional[SourceConnector] = None,
        libraries: Optional[List[Library]] = None,
        cooldown_seconds: float = 60.0,
        generator_timeout_seconds: Optional[float] = 10.0,
        max_workers: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the sync runner.

        Args:
            snapshot_store: Store for per-library snapshot files
            status_store: Store for per-library status maps
            sink: Vault sink receiving file operations
            generator: Note generator
            connector: Optional source connector; without one, passes use the
                stored snapshots
            libraries: Libraries to sync when no connector lists them
            cooldown_seconds: Minimum gap between a finished pass and a
                timer-triggered one
            generator_timeout_seconds: Time budget per generated record
            max_workers: Libraries synced concurrently by sync_all
            clock: Monotonic clock, replaceable in tests
        """
        self.snapshot_store = snapshot_store
        self.status_store = status_store
        self.sink = sink
        self.generator = generator
        self.connector = connector
        self.libraries = list(libraries or [])
        self.cooldown_seconds = cooldown_seconds
        self.generator_timeout_seconds = generator_timeout_seconds
        self.max_workers = max(1, max_workers)
        self.clock = clock

        self.applier = OperationApplier(sink)

        # Runtime state
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()
        self._last_finished: Dict[str, float] = {}
        self._timer_thread: Optional[threading.Thread] = None
        self._timer_stop = threading.Event()

    @classmethod
    def from_config(cls, config, fetch: bool = True) -> "SyncRunner":
        """
        Build a runner from a SyncConfig.

        Raises:
            ConfigurationError if fetching is requested without an API key
        """
        from ..connectors.zotero import ZoteroConnector
        from ..generators.markdown import MarkdownNoteGenerator
        from ..sinks.file_vault import FileVaultSink
        from ..state.status_store import JsonStatusStore

        connector = None
        if fetch:
            zotero = config.get_zotero_config()
            connector = ZoteroConnector(
                api_key=config.require_api_key(),
                base_url=zotero.get("base_url", "https://api.zotero.org"),
                page_size=int(zotero.get("page_size", 100)),
                timeout=int(zotero.get("timeout", 30)),
                max_retries=int(zotero.get("max_retries", 3)),
                rate_limit_delay=float(zotero.get("rate_limit_delay", 0.0)),
            )

        sync = config.get_sync_config()
        return cls(
            snapshot_store=SnapshotStore(config.store_dir),
            status_store=JsonStatusStore(config.store_dir),
            sink=FileVaultSink(config.vault_dir),
            generator=MarkdownNoteGenerator(folder=config.folder),
            connector=connector,
            libraries=config.get_libraries(),
            cooldown_seconds=float(sync.get("cooldown_seconds", 60.0)),
            generator_timeout_seconds=float(sync.get("generator_timeout_seconds", 10.0)),
            max_workers=int(sync.get("max_workers", 4)),
        )

    def _lock_for(self, library: Library) -> threading.Lock:
        with self._locks_lock:
            lock = self._locks.get(library.prefix)
            if lock is None:
                lock = threading.Lock()
                self._locks[library.prefix] = lock
            return lock

    def is_in_flight(self, library: Library) -> bool:
        return self._lock_for(library).locked()

    def discover_libraries(self) -> List[Library]:
        """
        Libraries to sync: configured ones, else the connector's, else the
        ones with a stored snapshot.
        """
        if self.libraries:
            return list(self.libraries)
        if self.connector is not None:
            return self.connector.list_libraries()
        return self.snapshot_store.list_libraries()

    def sync_library(
        self,
        library: Library,
        trigger: SyncTrigger = SyncTrigger.MANUAL,
        dry_run: bool = False,
    ) -> SyncReport:
        """
        Run one sync pass for a library.

        A pass already in flight for the same library makes this call return
        a skipped report immediately.

        Raises:
            ConfigurationError for fatal setup problems (before any mutation)
        """
        report = SyncReport(
            library=library.prefix,
            trigger=trigger.value,
            dry_run=dry_run,
            started_at=datetime.now(timezone.utc),
        )

        if trigger is SyncTrigger.TIMER and self._in_cooldown(library):
            return self._skip(report, "cooldown")

        lock = self._lock_for(library)
        if not lock.acquire(blocking=False):
            logger.info(f"Sync of {library.label} already in progress, ignoring {trigger.value} trigger")
            return self._skip(report, "in_flight")

        try:
            logger.info(f"Starting {trigger.value} sync of {library.label}")
            self._run_pass(library, report)
        except ConfigurationError:
            report.status = PassStatus.FAILED.value
            raise
        except Exception as e:
            report.status = PassStatus.FAILED.value
            report.errors.append(f"Sync error: {e}")
            logger.exception(f"Error during sync of {library.label}")
        finally:
            self._last_finished[library.prefix] = self.clock()
            lock.release()
            report.completed_at = datetime.now(timezone.utc)

        logger.info(f"Finished sync of {library.label}: {report.status}, {report.total_operations} operations")
        return report

    def sync_all(
        self,
        trigger: SyncTrigger = SyncTrigger.MANUAL,
        dry_run: bool = False,
    ) -> List[SyncReport]:
        """
        Sync every library, independent libraries in parallel.

        Raises:
            ConfigurationError for fatal setup problems
        """
        libraries = self.discover_libraries()
        if not libraries:
            logger.info("No libraries to sync")
            return []

        if len(libraries) == 1 or self.max_workers == 1:
            return [self.sync_library(library, trigger, dry_run) for library in libraries]

        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(libraries)),
            thread_name_prefix="zotsync-library",
        ) as executor:
            futures = [
                executor.submit(self.sync_library, library, trigger, dry_run)
                for library in libraries
            ]
            return [future.result() for future in futures]

    def clear_status(self, library: Library) -> bool:
        """
        Forget the status of a library so the next pass rebuilds every note.

        Waits for a pass in flight to finish first.
        """
        with self._lock_for(library):
            return self.status_store.clear(library)

    def start_timer(self, interval_seconds: float) -> None:
        """Run timer-triggered passes for all libraries in the background."""
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return
        self._timer_stop.clear()

        def _loop() -> None:
            while not self._timer_stop.wait(interval_seconds):
                try:
                    self.sync_all(SyncTrigger.TIMER)
                except ConfigurationError as e:
                    logger.error(f"Periodic sync stopped: {e}")
                    self._timer_stop.set()
                    return

        self._timer_thread = threading.Thread(target=_loop, name="zotsync-timer", daemon=True)
        self._timer_thread.start()
        logger.info(f"Periodic sync every {interval_seconds}s")

    def wait_for_timer(self, timeout: Optional[float] = None) -> bool:
        """Block until the timer is stopped or timeout passes. Returns True if stopped."""
        return self._timer_stop.wait(timeout)

    def stop_timer(self, timeout: Optional[float] = None) -> None:
        self._timer_stop.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout)
            self._timer_thread = None

    def _in_cooldown(self, library: Library) -> bool:
        finished = self._last_finished.get(library.prefix)
        return finished is not None and self.clock() - finished < self.cooldown_seconds

    def _skip(self, report: SyncReport, reason: str) -> SyncReport:
        report.status = PassStatus.SKIPPED.value
        report.skip_reason = reason
        report.completed_at = datetime.now(timezone.utc)
        return report

    def _run_pass(self, library: Library, report: SyncReport) -> None:
        """Fetch, generate, reconcile, apply and persist for one library."""
        if self.connector is not None:
            snapshot = self.connector.fetch_snapshot(library)
            if not report.dry_run:
                self.snapshot_store.save(library, snapshot)
        else:
            snapshot = self.snapshot_store.load(library)

        hierarchy = Hierarchy.build(snapshot)
        report.collection_count = len(hierarchy.collections)
        report.item_count = len(hierarchy.all_items)

        previous = self.status_store.load(library)
        generation = GenerationRunner(self.generator, library, self.generator_timeout_seconds)

        plans: Dict[RecordKind, ReconcilePlan] = {}
        records_by_kind = {
            RecordKind.COLLECTION: list(hierarchy.collections.values()),
            RecordKind.ITEM: list(hierarchy.items.values()),
        }
        for kind, records in records_by_kind.items():
            result = generation.run(kind, records, hierarchy.collections, hierarchy.all_items)
            report.generator_errors.extend(str(e) for e in result.errors)

            plan = reconcile(result.generated, previous.for_kind(kind), result.failed_keys)
            report.collisions.extend(c.to_dict() for c in plan.collisions)
            report.operations[kind.value] = plan.counts()
            plans[kind] = plan

        if report.dry_run:
            for kind, plan in plans.items():
                report.planned.extend(f"{kind.value} {op.key}: {op.describe()}" for op in plan.operations)
            return

        committed = StatusMap()
        for kind, plan in plans.items():
            result = self.applier.apply(plan.operations)
            report.apply_errors.extend(str(e) for e in result.failed)
            committed.set_kind(kind, plan.commit_status(result.failed_keys, result.succeeded))

        if committed == previous:
            logger.debug(f"Status of {library.label} unchanged")
            return

        try:
            self.status_store.save(library, committed)
        except StatusWriteError as e:
            logger.warning(f"Status for {library.label} not saved; next pass will redo its operations: {e}")
            report.warnings.append(str(e))

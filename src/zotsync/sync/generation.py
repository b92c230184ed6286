"""
Pre-generation step: run the note generator for every record of a kind.

Each record is generated in isolation. A generator exception or a record
that exceeds its time budget becomes a GeneratorError for that key only;
the remaining records are still generated.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple

from ..core.errors import GeneratorError
from ..core.generator import NoteGenerator
from ..core.models import (
    CollectionNode, GeneratedRecord, ItemNode, Library, Record, RecordKind,
)
from .canonical import build_marker, compute_content_hash, inject_marker

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Generated records for one kind plus the records that failed."""
    kind: RecordKind
    generated: List[GeneratedRecord] = field(default_factory=list)
    errors: List[GeneratorError] = field(default_factory=list)

    @property
    def failed_keys(self) -> List[str]:
        return [e.key for e in self.errors]


class GenerationRunner:
    """
    Runs a NoteGenerator over records with a per-record time budget.

    With a positive timeout, each record is generated on a worker thread and
    abandoned once the budget is spent. A stuck worker is left behind and a
    fresh executor is used for the remaining records. With timeout 0 or
    None, records are generated inline.
    """

    def __init__(
        self,
        generator: NoteGenerator,
        library: Library,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the generation runner.

        Args:
            generator: Note generator to run
            library: Library the records belong to (used for markers)
            timeout_seconds: Time budget per record (None/0 = unbounded)
        """
        self.generator = generator
        self.library = library
        self.timeout_seconds = timeout_seconds or None
        self._executor: Optional[ThreadPoolExecutor] = None

    def run(
        self,
        kind: RecordKind,
        records: Iterable[Record],
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> GenerationResult:
        """
        Generate path and content for every record.

        Returns:
            GenerationResult with generated records in input order
        """
        result = GenerationResult(kind=kind)
        try:
            for record in records:
                try:
                    path, content = self._generate_one(record, collections_by_id, items_by_id)
                except GeneratorError as e:
                    logger.warning(f"Generator failed for {kind.value} {e}")
                    result.errors.append(e)
                    continue

                if not path:
                    result.generated.append(GeneratedRecord(key=record.key, path="", hash="", content=""))
                    continue

                marked = inject_marker(content, build_marker(self.library, kind, record.key))
                result.generated.append(
                    GeneratedRecord(
                        key=record.key,
                        path=path,
                        hash=compute_content_hash(marked),
                        content=marked,
                    )
                )
        finally:
            self._shutdown()

        logger.debug(
            f"Generated {len(result.generated)} {kind.value} records for "
            f"{self.library.label} ({len(result.errors)} failed)"
        )
        return result

    def _generate_one(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> Tuple[str, str]:
        """Return (path, content); content is empty when the path is empty."""
        if self.timeout_seconds is None:
            return self._call_generator(record, collections_by_id, items_by_id)

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="zotsync-generator")

        future = self._executor.submit(self._call_generator, record, collections_by_id, items_by_id)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            # The worker may still be busy; give the next record a new one
            self._shutdown()
            raise GeneratorError(
                record.key, f"generation exceeded {self.timeout_seconds}s time budget"
            )

    def _call_generator(
        self,
        record: Record,
        collections_by_id: Mapping[str, CollectionNode],
        items_by_id: Mapping[str, ItemNode],
    ) -> Tuple[str, str]:
        try:
            path = self.generator.generate_path(record, collections_by_id, items_by_id)
            if not isinstance(path, str):
                raise GeneratorError(record.key, "generate_path must return a string")
            path = path.strip("/")
            if not path:
                return "", ""
            content = self.generator.generate_content(record, collections_by_id, items_by_id)
            if not isinstance(content, str):
                raise GeneratorError(record.key, "generate_content must return a string")
        except GeneratorError:
            raise
        except Exception as e:
            raise GeneratorError(record.key, f"{type(e).__name__}: {e}", cause=e) from e
        return path, content

    def _shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

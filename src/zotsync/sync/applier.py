"""
Applies reconciliation plans to a vault sink.

The plan is advisory relative to the live vault, so each operation degrades
to the closest sensible action when the vault does not look as expected.
A failing operation is recorded and the batch continues.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from ..core.errors import ApplyError
from ..core.models import Operation, OperationType
from ..core.sink import VaultSink

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying a batch of operations."""
    succeeded: List[Operation] = field(default_factory=list)
    failed: List[ApplyError] = field(default_factory=list)

    @property
    def failed_keys(self) -> Set[str]:
        return {error.operation.key for error in self.failed}

    @property
    def ok(self) -> bool:
        return not self.failed


class OperationApplier:
    """
    Executes file operations against a VaultSink, in the order given.
    """

    def __init__(self, sink: VaultSink):
        """
        Initialize the applier.

        Args:
            sink: Vault sink performing the file mutations
        """
        self.sink = sink

    def apply(self, operations: Iterable[Operation]) -> ApplyResult:
        """
        Apply operations one by one.

        Returns:
            ApplyResult listing succeeded and failed operations
        """
        result = ApplyResult()
        # Paths still held by a file whose rename failed
        occupied: Set[str] = set()
        for op in operations:
            blocker = self._blocker(op, result.failed_keys, occupied)
            try:
                if blocker is not None:
                    raise RuntimeError(blocker)
                self.apply_one(op)
            except Exception as e:
                error = ApplyError(op, e)
                logger.error(f"Failed to apply operation for {op.key}: {error}")
                result.failed.append(error)
                if op.type is OperationType.RENAME:
                    occupied.add(op.from_path)
                continue
            result.succeeded.append(op)

        logger.info(
            f"Applied {len(result.succeeded)} operations via {self.sink.get_name()} "
            f"({len(result.failed)} failed)"
        )
        return result

    def _blocker(self, op: Operation, failed_keys: Set[str], occupied: Set[str]) -> Optional[str]:
        """Reason an operation must not run after earlier failures, if any."""
        if op.key in failed_keys:
            return f"an earlier operation for {op.key} failed"
        if op.type is not OperationType.DELETE and op.path in occupied:
            return f"{op.path} was not vacated by a failed rename"
        return None

    def apply_one(self, op: Operation) -> None:
        """Apply a single operation, raising on failure."""
        if op.type is OperationType.RENAME:
            self._rename(op)
        elif op.type is OperationType.UPDATE:
            self._update(op)
        elif op.type is OperationType.CREATE:
            self._create(op.path, op.content or "")
        elif op.type is OperationType.DELETE:
            self._delete(op.path)
        else:
            raise ValueError(f"Unsupported operation type: {op.type}")

    def _ensure_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent:
            self.sink.ensure_directory(parent)

    def _rename(self, op: Operation) -> None:
        content = op.content or ""
        if not self.sink.exists(op.from_path):
            logger.debug(f"Rename source {op.from_path} is missing, creating {op.path}")
            self._create(op.path, content)
            return

        self._ensure_parent(op.path)
        self.sink.rename(op.from_path, op.path)
        if self.sink.read(op.path) != content:
            self.sink.modify(op.path, content)
        logger.debug(f"Renamed {op.from_path} -> {op.path}")

    def _update(self, op: Operation) -> None:
        if not self.sink.exists(op.path):
            logger.debug(f"Update target {op.path} is missing, creating it")
            self._create(op.path, op.content or "")
            return
        self.sink.modify(op.path, op.content or "")
        logger.debug(f"Updated {op.path}")

    def _create(self, path: str, content: str) -> None:
        self._ensure_parent(path)
        if self.sink.exists(path):
            logger.debug(f"Create target {path} already exists, overwriting")
            self.sink.modify(path, content)
            return
        self.sink.create(path, content)
        logger.debug(f"Created {path}")

    def _delete(self, path: str) -> None:
        if not self.sink.exists(path):
            logger.debug(f"Delete target {path} is already gone")
            return
        self.sink.delete(path)
        logger.debug(f"Deleted {path}")

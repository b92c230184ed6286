"""
Reconciliation of generated notes against the persisted status.

Given the generated (key, path, hash, content) of every record of one kind
and the status from the previous pass, compute the file operations that
bring the vault back in sync and the status to persist afterwards.

The plan is ordered rename → update → delete → create, so creates can
take over paths vacated by renames and renames never land on a file that
is deleted later in the same pass.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Set

from ..core.models import (
    GeneratedRecord, Operation, OperationType, OPERATION_ORDER, StatusEntry,
)

logger = logging.getLogger(__name__)

MOVE_SUFFIX = ".zotsync-move"


@dataclass
class PathCollision:
    """A generated path that another record of the same kind holds or wants."""
    path: str
    kept_key: str
    dropped_keys: List[str]

    def to_dict(self) -> Dict:
        return {"path": self.path, "kept_key": self.kept_key, "dropped_keys": self.dropped_keys}


@dataclass
class ReconcilePlan:
    """
    Result of a reconciliation.

    Attributes:
        operations: Ordered file operations
        new_status: Status to persist once every operation succeeded
        previous: Status the plan was computed from
        collisions: Path collisions detected before diffing
        preserved_keys: Keys whose previous status was carried over untouched
    """
    operations: List[Operation] = field(default_factory=list)
    new_status: Dict[str, StatusEntry] = field(default_factory=dict)
    previous: Dict[str, StatusEntry] = field(default_factory=dict)
    collisions: List[PathCollision] = field(default_factory=list)
    preserved_keys: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.operations

    def counts(self) -> Dict[str, int]:
        """Number of operations per type."""
        counts = {op_type.value: 0 for op_type in OPERATION_ORDER}
        for op in self.operations:
            counts[op.type.value] += 1
        return counts

    def commit_status(
        self,
        failed_keys: Iterable[str] = (),
        succeeded: Iterable[Operation] = (),
    ) -> Dict[str, StatusEntry]:
        """
        Status to persist after applying the plan.

        Keys with a failed operation keep their previous entry (or stay
        absent if they had none), so the next pass retries them. When a
        rename of a failed key did go through, its file now lives at the
        rename target, so the entry points there with the previous hash.
        """
        moved: Dict[str, str] = {}
        for op in succeeded:
            if op.type is OperationType.RENAME:
                moved[op.key] = op.path

        committed = dict(self.new_status)
        for key in set(failed_keys):
            previous = self.previous.get(key)
            if previous is None:
                committed.pop(key, None)
            elif key in moved:
                committed[key] = StatusEntry(path=moved[key], hash=previous.hash)
            else:
                committed[key] = previous
        return committed


def find_collisions(
    generated: Iterable[GeneratedRecord],
    previous: Optional[Mapping[str, StatusEntry]] = None,
    held_keys: Iterable[str] = (),
) -> List[PathCollision]:
    """
    Detect records whose generated path is already taken.

    A path is taken when several records generate it, or when a held key
    (one whose generation failed) still owns it from the previous pass.
    Among several claimants the record whose previous entry already holds
    the path keeps it; otherwise the lowest key does. Records that lose a
    collision are held as well, so their previous paths are checked again
    until nothing changes.
    """
    generated = [record for record in generated if record.path]
    previous = previous or {}
    held: Set[str] = set(held_keys)
    collisions: List[PathCollision] = []

    while True:
        reserved: Dict[str, str] = {}
        for key in sorted(held, reverse=True):
            if key in previous:
                reserved[previous[key].path] = key

        keys_by_path: Dict[str, List[str]] = OrderedDict()
        for record in generated:
            if record.key not in held:
                keys_by_path.setdefault(record.path, []).append(record.key)

        found = []
        for path, keys in keys_by_path.items():
            unique = sorted(set(keys))
            holder = reserved.get(path)
            if holder is not None:
                found.append(PathCollision(path=path, kept_key=holder, dropped_keys=unique))
            elif len(unique) > 1:
                owners = [k for k in unique if k in previous and previous[k].path == path]
                kept = owners[0] if owners else unique[0]
                found.append(
                    PathCollision(path=path, kept_key=kept, dropped_keys=[k for k in unique if k != kept])
                )

        if not found:
            return collisions
        for collision in found:
            held.update(collision.dropped_keys)
        collisions.extend(found)


def order_renames(renames: List[Operation]) -> List[Operation]:
    """
    Order renames so none lands on a path another rename still has to vacate.

    Rename cycles (two records swapping paths) are broken by moving one
    file to a temporary path first.
    """
    pending = list(renames)
    ordered: List[Operation] = []
    while pending:
        vacating = {op.from_path for op in pending}
        ready = [op for op in pending if op.path not in vacating]
        if ready:
            ready_ids = {id(op) for op in ready}
            ordered.extend(ready)
            pending = [op for op in pending if id(op) not in ready_ids]
            continue

        first = pending[0]
        temp_path = f"{first.from_path}{MOVE_SUFFIX}"
        logger.debug(f"Breaking rename cycle via {temp_path}")
        ordered.append(replace(first, path=temp_path))
        pending[0] = replace(first, from_path=temp_path)
    return ordered


def reconcile(
    generated: Iterable[GeneratedRecord],
    previous: Mapping[str, StatusEntry],
    preserved_keys: Iterable[str] = (),
) -> ReconcilePlan:
    """
    Diff generated notes against the previous status.

    Args:
        generated: Generator output for every record of one kind in one library
        previous: Status of the same kind from the last pass
        preserved_keys: Keys whose generation failed; they emit no operations
            and keep their previous status entry

    Returns:
        ReconcilePlan with ordered operations and the new status
    """
    generated = list(generated)
    working: Dict[str, StatusEntry] = dict(previous)
    preserved: Set[str] = set(preserved_keys)

    collisions = find_collisions(generated, previous, preserved)
    for collision in collisions:
        logger.warning(
            f"Path collision on {collision.path}: {collision.kept_key} holds it, "
            f"skipping {', '.join(collision.dropped_keys)}"
        )
        preserved.update(collision.dropped_keys)

    plan = ReconcilePlan(previous=dict(previous), collisions=collisions)
    renames: List[Operation] = []
    updates: List[Operation] = []
    deletes: List[Operation] = []
    creates: List[Operation] = []

    # Keys without usable output keep whatever they had
    for key in sorted(preserved):
        entry: Optional[StatusEntry] = working.pop(key, None)
        if entry is not None:
            plan.new_status[key] = entry
        plan.preserved_keys.append(key)

    for record in generated:
        if record.key in preserved:
            continue

        if not record.path:
            entry = working.pop(record.key, None)
            if entry is not None:
                deletes.append(Operation(OperationType.DELETE, key=record.key, path=entry.path))
            continue

        entry = working.pop(record.key, None)
        if entry is None:
            creates.append(
                Operation(OperationType.CREATE, key=record.key, path=record.path, content=record.content)
            )
        else:
            if entry.path != record.path:
                renames.append(
                    Operation(
                        OperationType.RENAME,
                        key=record.key,
                        path=record.path,
                        content=record.content,
                        from_path=entry.path,
                    )
                )
            if entry.hash != record.hash:
                updates.append(
                    Operation(OperationType.UPDATE, key=record.key, path=record.path, content=record.content)
                )
        plan.new_status[record.key] = StatusEntry(path=record.path, hash=record.hash)

    # Records that vanished from the snapshot
    for key, entry in working.items():
        deletes.append(Operation(OperationType.DELETE, key=key, path=entry.path))

    # A path taken over by another record must not be deleted
    claimed = {entry.path for entry in plan.new_status.values()}
    kept_deletes = []
    for op in deletes:
        if op.path in claimed:
            logger.debug(f"Not deleting {op.path} for {op.key}: path is now used by another record")
            continue
        kept_deletes.append(op)

    plan.operations = order_renames(renames) + updates + kept_deletes + creates
    return plan

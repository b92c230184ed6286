"""
Hierarchy construction for flat parent-referencing records.

Zotero delivers collections and items as flat lists where each record may
name a parent by key. This module turns those lists into trees:

- Collections: every collection stays addressable by key, nested or not.
- Items: child items (notes, attachments) are attached to their parent and
  removed from the root-addressable set.

Parent references are not guaranteed to resolve or to be acyclic. A record
with a dangling parent is a root, and an attachment that would close a
cycle is skipped, leaving that record a root.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, TypeVar

from ..core.models import CollectionNode, ItemNode, Record, Snapshot

logger = logging.getLogger(__name__)

NodeT = TypeVar("NodeT", CollectionNode, ItemNode)


def _index_by_key(records: Iterable[Record], node_type) -> Dict[str, NodeT]:
    """First pass: build the key → node lookup."""
    nodes: Dict[str, NodeT] = {}
    for record in records:
        if record.key in nodes:
            logger.warning(f"Duplicate {record.kind.value} key {record.key}; keeping the last one")
        nodes[record.key] = node_type.from_record(record)
    return nodes


def _closes_cycle(child_key: str, parent_key: str, attached_to: Mapping[str, str]) -> bool:
    """Return True if attaching child under parent would make a cycle."""
    seen: Set[str] = set()
    current: Optional[str] = parent_key
    while current is not None and current not in seen:
        if current == child_key:
            return True
        seen.add(current)
        current = attached_to.get(current)
    return False


def _attach_children(nodes: Dict[str, NodeT]) -> Set[str]:
    """
    Second pass: append every node with a resolvable parent to parent.children.

    Returns:
        Keys of the nodes that were attached
    """
    attached_to: Dict[str, str] = {}
    for key, node in nodes.items():
        parent_key = node.parent_ref
        if not parent_key:
            continue
        parent = nodes.get(parent_key)
        if parent is None:
            logger.debug(f"{node.kind.value} {key}: parent {parent_key} not found, treating as root")
            continue
        if _closes_cycle(key, parent_key, attached_to):
            logger.warning(f"{node.kind.value} {key}: parent {parent_key} forms a cycle, treating as root")
            continue
        parent.children.append(node)
        attached_to[key] = parent_key
    return set(attached_to)


def build_collection_tree(records: Iterable[Record]) -> Dict[str, CollectionNode]:
    """
    Build the collection tree.

    Returns:
        All collections by key, with child collections attached. Nested
        collections remain in the result.
    """
    nodes = _index_by_key(records, CollectionNode)
    _attach_children(nodes)
    return nodes


def build_item_tree(records: Iterable[Record]) -> Dict[str, ItemNode]:
    """
    Build the item tree.

    Returns:
        Root-addressable items by key. Attached child items are only
        reachable through their parent's children.
    """
    nodes = _index_by_key(records, ItemNode)
    attached = _attach_children(nodes)
    return {key: node for key, node in nodes.items() if key not in attached}


def ancestors_of(key: str, records_by_key: Mapping[str, Record]) -> List[Record]:
    """
    Return the ancestor chain of a record, self first, root last.

    The walk stops at a missing parent or on the first revisited key.
    An unknown key gives an empty chain.
    """
    chain: List[Record] = []
    visited: Set[str] = set()
    current = records_by_key.get(key)
    while current is not None and current.key not in visited:
        visited.add(current.key)
        chain.append(current)
        if not current.parent_ref:
            break
        current = records_by_key.get(current.parent_ref)
    return chain


def _all_item_nodes(roots: Iterable[ItemNode]) -> Dict[str, ItemNode]:
    """Flatten an item forest back into a key → node lookup."""
    nodes: Dict[str, ItemNode] = {}
    stack = list(roots)
    while stack:
        node = stack.pop()
        if node.key in nodes:
            continue
        nodes[node.key] = node
        stack.extend(node.children)
    return nodes


@dataclass
class Hierarchy:
    """
    Trees and lookups for one library snapshot.

    Attributes:
        collections: All collections by key (used as collectionsById)
        items: Root-addressable items by key
        all_items: Every item by key, children included (used as itemsById)
    """
    collections: Dict[str, CollectionNode] = field(default_factory=dict)
    items: Dict[str, ItemNode] = field(default_factory=dict)
    all_items: Dict[str, ItemNode] = field(default_factory=dict)

    @classmethod
    def build(cls, snapshot: Snapshot) -> "Hierarchy":
        collections = build_collection_tree(snapshot.collections)
        items = build_item_tree(snapshot.items)
        return cls(
            collections=collections,
            items=items,
            all_items=_all_item_nodes(items.values()),
        )

    @property
    def root_collections(self) -> List[CollectionNode]:
        """Collections that are not attached to a parent."""
        nested = {child.key for node in self.collections.values() for child in node.children}
        return [node for key, node in self.collections.items() if key not in nested]

    def collection_ancestors(self, key: str) -> List[CollectionNode]:
        return ancestors_of(key, self.collections)

    def item_ancestors(self, key: str) -> List[ItemNode]:
        return ancestors_of(key, self.all_items)

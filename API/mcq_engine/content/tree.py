"""
Chapter content trees and path-addressed insertion.

A tree is the JSON document stored per (category, chapter)::

    {"topics": [{"topic": "...", "subtopics": [{"subtopic": "...", "details": [...]}]}]}

Levels run topics -> subtopics -> details -> subdetails -> particulars. The first four
hold labelled dicts; particulars hold plain strings. Nodes are addressed with paths such
as ``root.topics[0].subtopics[1]``.
"""
from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any

from mcq_engine.core.errors import InvalidPathError
from mcq_engine.core.logging import DOMAIN_MAPPING, get_domain_logger

logger = get_domain_logger(__name__, DOMAIN_MAPPING)

NODE_LEVELS: tuple[str, ...] = ("topics", "subtopics", "details", "subdetails")
LEAF_LEVEL = "particulars"
LEVELS: tuple[str, ...] = NODE_LEVELS + (LEAF_LEVEL,)
LABEL_KEYS: dict[str, str] = {
    "topics": "topic",
    "subtopics": "subtopic",
    "details": "detail",
    "subdetails": "subdetail",
}

# enhancement key -> (child level it appends to, level its parent path must end at)
NEW_ENTRY_KINDS: dict[str, tuple[str, str]] = {
    "newSubtopics": ("subtopics", "topics"),
    "newDetails": ("details", "subtopics"),
    "newSubdetails": ("subdetails", "details"),
    "newParticulars": ("particulars", "subdetails"),
}

_SEGMENT = re.compile(r"([A-Za-z_]+)(?:\[(-?\d+)\])?")


@dataclass(frozen=True)
class PathSegment:
    level: str
    index: int


def parse_path(path: str) -> list[PathSegment]:
    """Parse ``[root.]level[i](.level[i])*`` into segments, enforcing level order."""
    if not isinstance(path, str) or not path.strip():
        raise InvalidPathError("path must be a non-empty string")
    raw = path.strip()
    if raw == "root":
        return []
    if raw.startswith("root."):
        raw = raw[len("root."):]

    segments: list[PathSegment] = []
    for part in raw.split("."):
        match = _SEGMENT.fullmatch(part)
        if not match:
            raise InvalidPathError(f"Invalid path format at {path}: malformed segment {part!r}")
        level, index = match.group(1), match.group(2)
        if level not in LEVELS:
            raise InvalidPathError(f"Invalid path format at {path}: unknown level {level!r}")
        if index is None:
            raise InvalidPathError(f"Invalid path format at {path}: expected index after {level}")
        if level == LEAF_LEVEL:
            raise InvalidPathError(f"Invalid path format at {path}: particulars are not addressable nodes")
        expected = NODE_LEVELS[len(segments)]
        if level != expected:
            raise InvalidPathError(f"Invalid path format at {path}: expected {expected} but found {level}")
        position = int(index)
        if position < 0:
            raise InvalidPathError(f"Invalid path format at {path}: negative index {position}")
        segments.append(PathSegment(level=level, index=position))
    return segments


def create_or_get_node(tree: dict, path: str) -> dict:
    """
    Resolve ``path`` to a node dict inside ``tree``.

    A missing node is created as ``{}`` only for the last segment and only when its
    index is the next free position of that list. Anything else that does not resolve
    raises InvalidPathError. Mutates ``tree`` when a node is created.
    """
    segments = parse_path(path)
    current: dict = tree
    for position, segment in enumerate(segments):
        is_last = position == len(segments) - 1
        children = current.get(segment.level)
        if children is None:
            if not (is_last and segment.index == 0):
                raise InvalidPathError(f"Path {path} does not resolve: no {segment.level} at this level")
            children = current[segment.level] = []
        if not isinstance(children, list):
            raise InvalidPathError(f"Path {path} does not resolve: {segment.level} is not a list")

        if segment.index < len(children):
            node = children[segment.index]
            if not isinstance(node, dict):
                raise InvalidPathError(f"Path {path} does not resolve: {segment.level}[{segment.index}] is not a node")
        elif is_last and segment.index == len(children):
            node = {}
            children.append(node)
        else:
            raise InvalidPathError(
                f"Path {path} does not resolve: {segment.level}[{segment.index}] is out of range ({len(children)} entries)"
            )
        current = node
    return current


def _path_level(path: str) -> str | None:
    segments = parse_path(path)
    return segments[-1].level if segments else None


def _merge_entry(tree: dict, kind: str, entry: Any) -> None:
    child_level, parent_level = NEW_ENTRY_KINDS[kind]
    if not isinstance(entry, dict):
        raise InvalidPathError(f"{kind} entry must be an object")
    parent_path = entry.get("parentPath")
    if _path_level(parent_path) != parent_level:
        raise InvalidPathError(f"{kind} parentPath {parent_path} must address a node in {parent_level}")

    parent = create_or_get_node(tree, parent_path)
    children = parent.setdefault(child_level, [])
    if not isinstance(children, list):
        raise InvalidPathError(f"{parent_path} has a non-list {child_level}")

    if child_level == LEAF_LEVEL:
        particulars = entry.get("particulars") or []
        added = [p for p in particulars if isinstance(p, str) and p.strip()]
        children.extend(added)
        logger.info("Adding %d new particulars at %s", len(added), parent_path)
        return

    node = {key: value for key, value in entry.items() if key != "parentPath"}
    children.append(node)
    logger.info("Adding new %s at %s: %s", LABEL_KEYS[child_level], parent_path, node.get(LABEL_KEYS[child_level]))


def merge_new_entries(tree: dict, new_entries: dict) -> dict:
    """
    Return a copy of ``tree`` with the enhancement entries appended.

    Existing entries are never modified, removed or deduplicated. An entry whose
    ``parentPath`` does not resolve is logged and skipped; the rest still merge.
    """
    merged = copy.deepcopy(tree) if tree else {}
    entries = new_entries or {}

    new_topics = entries.get("newTopics")
    if isinstance(new_topics, list) and new_topics:
        topics = merged.setdefault("topics", [])
        for topic in new_topics:
            if isinstance(topic, dict):
                topics.append({key: value for key, value in copy.deepcopy(topic).items() if key != "parentPath"})
        logger.info("Adding %d new topics", len(new_topics))

    for kind in NEW_ENTRY_KINDS:
        items = entries.get(kind)
        if not isinstance(items, list):
            continue
        for entry in items:
            try:
                _merge_entry(merged, kind, copy.deepcopy(entry))
            except InvalidPathError as exc:
                logger.error("Failed to merge %s entry: %s", kind, exc)
    return merged


def has_new_entries(new_entries: dict) -> bool:
    return any(new_entries.get(key) for key in ("newTopics", *NEW_ENTRY_KINDS))

from __future__ import annotations

import random

from mcq_engine.content.tree import LABEL_KEYS, LEAF_LEVEL, NODE_LEVELS
from mcq_engine.core.errors import EmptyTreeError


def _walk(nodes: list, level_index: int, out: list[str]) -> None:
    level = NODE_LEVELS[level_index]
    label_key = LABEL_KEYS[level]
    child_level = NODE_LEVELS[level_index + 1] if level_index + 1 < len(NODE_LEVELS) else LEAF_LEVEL
    for node in nodes:
        if not isinstance(node, dict):
            continue
        label = node.get(label_key)
        if isinstance(label, str) and label:
            out.append(label)
        children = node.get(child_level)
        if not isinstance(children, list):
            continue
        if child_level == LEAF_LEVEL:
            out.extend(p for p in children if isinstance(p, str) and p)
        else:
            _walk(children, level_index + 1, out)


def flatten_node_labels(tree: dict) -> list[str]:
    """Depth-first pre-order labels of every node, with each particular taken verbatim."""
    topics = tree.get("topics") if isinstance(tree, dict) else None
    if not isinstance(topics, list):
        return []
    labels: list[str] = []
    _walk(topics, 0, labels)
    return labels


def select_random_node(tree: dict, rng: random.Random | None = None) -> str:
    """
    Pick one label uniformly from the flattened tree.

    Leaf-heavy chapters favour particulars over topics; the draw is uniform over
    labels, not over depth.
    """
    topics = tree.get("topics") if isinstance(tree, dict) else None
    if not isinstance(topics, list) or not topics:
        raise EmptyTreeError("Tree has no topics")
    labels = flatten_node_labels(tree)
    if not labels:
        raise EmptyTreeError("Tree traversal produced no node labels")
    return (rng or random).choice(labels)


def node_exists(tree: dict, label: str) -> bool:
    return label in flatten_node_labels(tree)

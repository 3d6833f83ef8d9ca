from __future__ import annotations

import random
from collections import Counter

import pytest

from mcq_engine.content.selector import flatten_node_labels, node_exists, select_random_node
from mcq_engine.core.errors import EmptyTreeError

NESTED = {
    "topics": [
        {
            "topic": "A",
            "subtopics": [
                {
                    "subtopic": "B",
                    "details": [
                        {"detail": "C", "subdetails": [{"subdetail": "D", "particulars": ["E", "F"]}]}
                    ],
                }
            ],
        }
    ]
}


def test_flatten_is_depth_first_preorder():
    assert flatten_node_labels(NESTED) == ["A", "B", "C", "D", "E", "F"]


def test_flatten_visits_siblings_in_order():
    tree = {
        "topics": [
            {"topic": "T1", "subtopics": [{"subtopic": "S1"}, {"subtopic": "S2", "details": [{"detail": "D1"}]}]},
            {"topic": "T2"},
        ]
    }
    assert flatten_node_labels(tree) == ["T1", "S1", "S2", "D1", "T2"]


def test_unlabelled_nodes_are_traversed_but_not_listed():
    tree = {"topics": [{"subtopics": [{"subtopic": "Inner"}]}]}
    assert flatten_node_labels(tree) == ["Inner"]


def test_select_returns_a_flattened_label():
    rng = random.Random(3)
    labels = set(flatten_node_labels(NESTED))
    for _ in range(50):
        assert select_random_node(NESTED, rng) in labels


def test_select_is_uniform_over_labels_not_depth():
    tree = {"topics": [{"topic": "T", "subtopics": [{"subtopic": "S", "details": [{"detail": "D", "subdetails": [
        {"subdetail": "X", "particulars": [f"p{i}" for i in range(16)]}
    ]}]}]}]}
    rng = random.Random(11)
    draws = Counter(select_random_node(tree, rng) for _ in range(2000))
    particulars = sum(count for label, count in draws.items() if label.startswith("p"))
    # 16 of 20 labels are particulars
    assert particulars > 1400


@pytest.mark.parametrize(
    "tree",
    [
        {},
        {"topics": []},
        {"topics": "not a list"},
        {"topics": [{}]},
        {"topics": [{"subtopics": [{"details": []}]}]},
    ],
)
def test_select_raises_on_empty_trees(tree):
    with pytest.raises(EmptyTreeError):
        select_random_node(tree)


def test_node_exists_checks_every_level():
    assert node_exists(NESTED, "D")
    assert node_exists(NESTED, "F")
    assert not node_exists(NESTED, "G")

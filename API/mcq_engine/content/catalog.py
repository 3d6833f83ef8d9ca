"""
MCQ option layouts.

``MCQ_STRUCTURES`` is the static vocabulary of UPSC question families; each entry fixes
the option layout and which letter is correct. ``COMBINATION_TEMPLATES`` holds the
statement-combination layouts used when turning a statement batch into a question,
keyed by how many statements the question shows.
"""
from __future__ import annotations

import random
from itertools import combinations
from types import MappingProxyType

from mcq_engine.schemas.mcq import OPTION_LETTERS

NONE_OF_THE_ABOVE = "None of the above"
_SOURCE = "【[chapter]:[statement]†[source]】"


def _single_correct_explanation(letter: str) -> str:
    others = [x for x in OPTION_LETTERS if x != letter]
    return (
        f"The statement is correct because [Option {letter}] aligns with historical facts: [specific reason]. "
        f"Options {others[0]}, {others[1]}, and {others[2]} are incorrect due to [misconception 1], "
        f"[misconception 2], and [misconception 3]. {_SOURCE} "
        f"Therefore, the correct answer is ({letter.lower()}) because [reason]."
    )


def _generic_explanation(letter: str, outcome: str) -> str:
    return (
        f"[Explain each statement or pair with a specific reason]. {_SOURCE} "
        f"Therefore, the correct answer is ({letter.lower()}) because {outcome}."
    )


# (family name, options in letter order, per-letter suffix, per-letter outcome text)
_FAMILIES: list[tuple[str, list[str], list[str], list[str]]] = [
    (
        "Multiple Statements Which Correct 2 Statements",
        ["1 only", "2 only", "Both 1 and 2", "Neither 1 nor 2"],
        ["1 Only", "2 Only", "Both 1 and 2", "Neither 1 nor 2"],
        ["only statement 1 is correct", "only statement 2 is correct", "both statements are correct", "neither statement is correct"],
    ),
    (
        "Multiple Statements Which Correct 3 Statements",
        ["1 and 2 only", "2 and 3 only", "1 and 3 only", "1, 2 and 3"],
        ["1 and 2 Only", "2 and 3 Only", "1 and 3 Only", "All Correct"],
        ["statements 1 and 2 are correct", "statements 2 and 3 are correct", "statements 1 and 3 are correct", "all three statements are correct"],
    ),
    (
        "Multiple Statements Which Correct 4 Statements",
        ["1, 2 and 3 only", "2, 3 and 4 only", "1, 3 and 4 only", "1, 2, 3 and 4"],
        ["1, 2 and 3 Only", "2, 3 and 4 Only", "1, 3 and 4 Only", "All Correct"],
        ["statements 1, 2 and 3 are correct", "statements 2, 3 and 4 are correct", "statements 1, 3 and 4 are correct", "all four statements are correct"],
    ),
    (
        "Statement I and Statement II",
        [
            "Both Statement-I and Statement-II are correct and Statement-II explains Statement-I",
            "Both Statement-I and Statement-II are correct, but Statement-II does not explain Statement-I",
            "Statement-I is correct, but Statement-II is incorrect",
            "Statement-I is incorrect, but Statement-II is correct",
        ],
        ["Both Correct and II Explains I", "Both Correct but II Does Not Explain I", "I Correct II Incorrect", "I Incorrect II Correct"],
        ["both are correct and Statement-II explains Statement-I", "both are correct but Statement-II does not explain Statement-I",
         "only Statement-I is correct", "only Statement-II is correct"],
    ),
    (
        "Matching Pairs How Many Correct 3 Pairs",
        ["Only one pair", "Only two pairs", "All three pairs", "None of the pairs"],
        ["Only One Pair", "Only Two Pairs", "All Three Pairs", "None of the Pairs"],
        ["only one pair is correctly matched", "only two pairs are correctly matched", "all three pairs are correctly matched", "no pair is correctly matched"],
    ),
    (
        "Matching Pairs How Many Correct 4 Pairs",
        ["Only one", "Only two", "Only three", "All four"],
        ["Only One", "Only Two", "Only Three", "All Four"],
        ["only one pair is correctly matched", "only two pairs are correctly matched", "only three pairs are correctly matched", "all four pairs are correctly matched"],
    ),
    (
        "Select Correct Combination 3 Items",
        ["1 only", "2 and 3 only", "1, 2 and 3", NONE_OF_THE_ABOVE],
        ["1 Only", "2 and 3 Only", "All Correct", "None Correct"],
        ["only item 1 is correct", "items 2 and 3 are correct", "all three items are correct", "none of the items is correct"],
    ),
    (
        "Select Correct Combination 4 Items",
        ["1, 2 and 3 only", "2, 3 and 4 only", "1, 3 and 4 only", "1, 2, 3 and 4"],
        ["1, 2 and 3 Only", "2, 3 and 4 Only", "1, 3 and 4 Only", "All Correct"],
        ["items 1, 2 and 3 are correct", "items 2, 3 and 4 are correct", "items 1, 3 and 4 are correct", "all four items are correct"],
    ),
]


def format_options_template(options: list[str]) -> str:
    """``["x", "y", ...]`` -> ``"(a) x (b) y (c) ... (d) ..."``."""
    return " ".join(f"({letter.lower()}) {text}" for letter, text in zip(OPTION_LETTERS, options))


def _build_structures() -> tuple[MappingProxyType, ...]:
    structures = []
    for letter in OPTION_LETTERS:
        structures.append({
            "name": f"Single Correct Answer Direct - Correct {letter}",
            "options_template": "(a) [Option A] (b) [Option B] (c) [Option C] (d) [Option D]",
            "options": [f"[Option {x}]" for x in OPTION_LETTERS],
            "correct_answer": letter,
            "explanation_format": _single_correct_explanation(letter),
        })
    for family, options, suffixes, outcomes in _FAMILIES:
        for letter, suffix, outcome in zip(OPTION_LETTERS, suffixes, outcomes):
            structures.append({
                "name": f"{family} - {suffix}",
                "options_template": format_options_template(options),
                "options": list(options),
                "correct_answer": letter,
                "explanation_format": _generic_explanation(letter, outcome),
            })
    return tuple(MappingProxyType(s) for s in structures)


MCQ_STRUCTURES = _build_structures()


def random_structure(exclude: str | None = None, rng: random.Random | None = None):
    """Pick a catalog entry, avoiding ``exclude`` (the previous structure's name) when possible."""
    pool = [s for s in MCQ_STRUCTURES if s["name"] != exclude] or list(MCQ_STRUCTURES)
    return (rng or random).choice(pool)


def _combination(name: str, options: list[str | None]) -> MappingProxyType:
    return MappingProxyType({"name": name, "options": tuple(o or NONE_OF_THE_ABOVE for o in options)})


COMBINATION_TEMPLATES: dict[int, tuple[MappingProxyType, ...]] = {
    2: (
        _combination("Select Correct Combination 2 Statements", ["1 only", "2 only", "Both 1 and 2", None]),
    ),
    3: (
        _combination("Select Correct Combination 3 Items", ["1 only", "2 and 3 only", "1, 2 and 3", None]),
        _combination("Select Correct Combination 3 Statements Singles", ["1 only", "2 only", "3 only", None]),
        _combination("Select Correct Combination 3 Statements Pairs", ["1 and 2 only", "1 and 3 only", "2 and 3 only", None]),
        _combination("Select Correct Combination 3 Statements Mixed 1", ["1 only", "1 and 2 only", "3 only", None]),
        _combination("Select Correct Combination 3 Statements Mixed 2", ["2 only", "1 and 3 only", "1, 2 and 3", None]),
        _combination("Select Correct Combination 3 Statements Mixed 3", ["3 only", "2 and 3 only", "1 and 2 only", None]),
        _combination("Select Correct Combination 3 Statements Mixed 4", ["1 only", "2 only", "1 and 3 only", None]),
        _combination("Select Correct Combination 3 Statements All", ["1 only", "1 and 2 only", "1, 2 and 3", None]),
    ),
    4: (
        _combination("Select Correct Combination 4 Statements", ["1 only", "1 and 2 only", "1, 2 and 3 only", None]),
        _combination("Select Correct Combination 4 Statements Singles", ["1 only", "2 only", "3 only", None]),
        _combination("Select Correct Combination 4 Statements Triples", ["1, 2 and 3 only", "2, 3 and 4 only", "1, 3 and 4 only", None]),
        _combination("Select Correct Combination 4 Statements Pairs", ["1 and 2 only", "2 and 3 only", "3 and 4 only", None]),
        _combination("Select Correct Combination 4 Statements Mixed 1", ["1 only", "1 and 3 only", "2, 3 and 4 only", None]),
        _combination("Select Correct Combination 4 Statements Mixed 2", ["2 only", "2 and 4 only", "1, 2 and 3 only", None]),
        _combination("Select Correct Combination 4 Statements Mixed 3", ["3 only", "1 and 4 only", "1, 2 and 4 only", None]),
        _combination("Select Correct Combination 4 Statements Mixed 4", ["4 only", "3 and 4 only", "1, 3 and 4 only", None]),
        _combination("Select Correct Combination 4 Statements All", ["1 only", "1 and 2 only", "1, 2, 3 and 4", None]),
    ),
}


def combination_phrase(true_positions: list[int], k: int) -> str:
    """
    Option phrase naming which of the ``k`` displayed statements are true.

    ``true_positions`` are 1-based display positions. Examples for k=4: [] -> "None of
    the above", [2] -> "2 only", [1, 3] -> "1 and 3 only", [1, 2, 4] -> "1, 2 and 4 only",
    [1, 2, 3, 4] -> "1, 2, 3 and 4". With k=2 both true reads "Both 1 and 2".
    """
    if k not in COMBINATION_TEMPLATES:
        raise ValueError(f"unsupported statement count {k}")
    positions = sorted(set(true_positions))
    if any(p < 1 or p > k for p in positions):
        raise ValueError(f"positions {positions} out of range for {k} statements")

    if not positions:
        return NONE_OF_THE_ABOVE
    if len(positions) == 1:
        return f"{positions[0]} only"
    if len(positions) == 2 and k == 2:
        return "Both 1 and 2"
    joined = ", ".join(str(p) for p in positions[:-1]) + f" and {positions[-1]}"
    if len(positions) == k:
        return joined
    return f"{joined} only"


def phrase_grammar(k: int) -> list[str]:
    """Every phrase ``combination_phrase`` can produce for ``k`` statements."""
    return [
        combination_phrase(list(subset), k)
        for size in range(k + 1)
        for subset in combinations(range(1, k + 1), size)
    ]


def templates_with_phrase(k: int, phrase: str) -> list[MappingProxyType]:
    return [t for t in COMBINATION_TEMPLATES.get(k, ()) if phrase in t["options"]]


def uncovered_phrases(k: int) -> list[str]:
    return [phrase for phrase in phrase_grammar(k) if not templates_with_phrase(k, phrase)]


def synthesize_combination_template(k: int, phrase: str, rng: random.Random | None = None) -> MappingProxyType:
    """
    Build a 4-option layout containing ``phrase`` plus distractors from the same grammar.

    "None of the above" always takes the last slot; other options keep their relative order.
    """
    grammar = phrase_grammar(k)
    if phrase not in grammar:
        raise ValueError(f"{phrase!r} is not a valid phrase for {k} statements")
    distractors = [p for p in grammar if p not in (phrase, NONE_OF_THE_ABOVE)]
    picked = (rng or random).sample(distractors, 2 if phrase != NONE_OF_THE_ABOVE else 3)
    body = sorted([phrase, *picked] if phrase != NONE_OF_THE_ABOVE else picked, key=grammar.index)
    return _combination(f"Select Correct Combination {k} Statements Synthesized", [*body, None])

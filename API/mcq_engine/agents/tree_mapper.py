"""
Tree Mapping Agent: builds the topic outline for a book chapter and extends it later
with entries the outline does not cover yet.
"""
from __future__ import annotations

import json
from typing import Any

from mcq_engine.agents.base import OracleAgent
from mcq_engine.content.tree import has_new_entries, merge_new_entries
from mcq_engine.core.errors import ContractViolationError
from mcq_engine.core.logging import DOMAIN_MAPPING, get_domain_logger
from mcq_engine.core.oracle import ThreadedOracle
from mcq_engine.core.settings import settings
from mcq_engine.data.books import get_book

logger = get_domain_logger(__name__, DOMAIN_MAPPING)

_TREE_SHAPE = """{
  "topics": [
    {
      "topic": "Theme",
      "subtopics": [
        {
          "subtopic": "Sub-theme",
          "details": [
            {
              "detail": "Aspect",
              "subdetails": [
                {"subdetail": "Granular Point", "particulars": ["Fact 1", "Fact 2"]}
              ]
            }
          ]
        }
      ]
    }
  ],
  "note": "Summary of generated content or error message"
}"""

_ENHANCE_SHAPE = """{
  "newTopics": [{"topic": "New Theme", "subtopics": []}],
  "newSubtopics": [{"parentPath": "root.topics[0]", "subtopic": "New Sub-theme", "details": []}],
  "newDetails": [{"parentPath": "root.topics[0].subtopics[0]", "detail": "New Aspect", "subdetails": []}],
  "newSubdetails": [{"parentPath": "root.topics[0].subtopics[0].details[0]", "subdetail": "New Point", "particulars": []}],
  "newParticulars": [{"parentPath": "root.topics[0].subtopics[0].details[0].subdetails[0]", "particulars": ["New Fact"]}],
  "note": "Optional explanation if nothing new was added"
}"""


def build_tree_prompt(book_name: str, category: str, chapter: str) -> str:
    return f"""
Create a detailed tree structure for the chapter "{chapter}" of "{book_name}" ({category}), suitable for generating UPSC-style MCQs. Use your own knowledge of the book.

Levels:
- topics: main themes of the chapter
- subtopics: specific events or sub-themes
- details: key aspects of each subtopic
- subdetails: granular points
- particulars: specific facts or examples, as an array of strings

Include 1-3 subtopics per topic, 1-2 details per subtopic, 1-2 subdetails per detail and 1-3 particulars per subdetail. Limit the depth to these 5 levels.
If you lack sufficient knowledge, return {{"topics": [], "note": "Insufficient knowledge for '{book_name}', chapter '{chapter}'."}}.
Include a note summarizing the generated content.

Output format:
{_TREE_SHAPE}
Return only the JSON object.
""".strip()


def build_enhance_prompt(book_name: str, chapter: str, existing: dict) -> str:
    return f"""
Provide new additions to the existing tree structure for the chapter "{chapter}" of "{book_name}". The existing tree is:

{json.dumps(existing, indent=2, ensure_ascii=False)}

- Identify new, unique subtopics, details, subdetails or particulars not already present.
- Do not modify, remove or duplicate existing entries.
- Address parents with parentPath values such as "root.topics[0].subtopics[1]" that point at existing nodes.
- If nothing new can be added, return empty lists with a note explaining why.

Output format:
{_ENHANCE_SHAPE}
Return only the JSON object.
""".strip()


def validate_tree_reply(payload: dict) -> dict:
    topics = payload.get("topics")
    if not isinstance(topics, list):
        raise ContractViolationError("Failed to parse tree structure: 'topics' must be a list")
    tree: dict = {"topics": topics}
    if isinstance(payload.get("note"), str):
        tree["note"] = payload["note"]
    return tree


def validate_enhance_reply(payload: dict) -> dict:
    for key in ("newTopics", "newSubtopics", "newDetails", "newSubdetails", "newParticulars"):
        value = payload.get(key)
        if value is not None and not isinstance(value, list):
            raise ContractViolationError(f"{key} must be a list")
    return payload


class TreeMappingAgent(OracleAgent):
    task_name = "tree mapping"

    def __init__(self, oracle: ThreadedOracle, max_attempts: int | None = None):
        super().__init__(oracle, settings.tree_max_attempts if max_attempts is None else max_attempts, logger)

    async def generate_tree(self, category: str, chapter: str, thread_id: str | None = None) -> dict:
        book = get_book(category)
        logger.info("Generating tree structure for %s - %s", category, chapter)
        tree = await self._exchange(thread_id, build_tree_prompt(book["book_name"], category, chapter), validate_tree_reply)
        if not tree["topics"]:
            logger.warning("Empty tree for %s - %s: %s", category, chapter, tree.get("note", "no note"))
        return tree

    async def enhance_tree(self, category: str, chapter: str, existing: dict, thread_id: str | None = None) -> dict:
        book = get_book(category)
        logger.info("Enhancing tree structure for %s - %s", category, chapter)
        entries = await self._exchange(
            thread_id, build_enhance_prompt(book["book_name"], chapter, existing), validate_enhance_reply
        )
        if not has_new_entries(entries):
            logger.warning("No new entries for %s - %s. Note: %s", category, chapter, entries.get("note", "none"))
        return merge_new_entries(existing, entries)

    async def run(self, input_data: dict[str, Any]) -> dict[str, Any]:
        category, chapter = input_data["category"], input_data["chapter"]
        existing = input_data.get("existing")
        if existing:
            return await self.enhance_tree(category, chapter, existing)
        return await self.generate_tree(category, chapter)

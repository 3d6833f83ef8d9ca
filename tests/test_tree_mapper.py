from __future__ import annotations

import json

import pytest

from conftest import SAMPLE_TREE, ScriptedProvider
from mcq_engine.agents.tree_mapper import TreeMappingAgent
from mcq_engine.core.errors import GenerationExhaustedError, UnknownCategoryError
from mcq_engine.core.locks import ThreadLockRegistry
from mcq_engine.core.oracle import ThreadedOracle
from mcq_engine.memory.store import FileContentStore
from mcq_engine.runtime.mapping import book_overview, map_book, map_chapter

CHAPTER = "Chapter 7 Fundamental Rights"


def _agent(*replies):
    provider = ScriptedProvider(replies)
    return TreeMappingAgent(ThreadedOracle(provider, ThreadLockRegistry()), max_attempts=2), provider


@pytest.mark.asyncio
async def test_generate_tree_keeps_topics_and_note():
    agent, provider = _agent(json.dumps(SAMPLE_TREE))
    tree = await agent.generate_tree("Polity", CHAPTER)
    assert tree == SAMPLE_TREE
    assert "Laxmikanth Book" in provider.prompts[0]


@pytest.mark.asyncio
async def test_insufficient_knowledge_tree_is_accepted():
    agent, _ = _agent(json.dumps({"topics": [], "note": "Insufficient knowledge"}))
    tree = await agent.generate_tree("Polity", CHAPTER)
    assert tree == {"topics": [], "note": "Insufficient knowledge"}


@pytest.mark.asyncio
async def test_generate_tree_without_topics_exhausts():
    agent, _ = _agent('{"note": "oops"}', '{"topics": "bad"}')
    with pytest.raises(GenerationExhaustedError):
        await agent.generate_tree("Polity", CHAPTER)


@pytest.mark.asyncio
async def test_unknown_category_is_rejected_before_calling_oracle():
    agent, provider = _agent(json.dumps(SAMPLE_TREE))
    with pytest.raises(UnknownCategoryError):
        await agent.generate_tree("Astrology", CHAPTER)
    assert provider.prompts == []


@pytest.mark.asyncio
async def test_enhance_tree_merges_new_entries():
    reply = {
        "newSubtopics": [{"parentPath": "root.topics[0]", "subtopic": "Right to Freedom", "details": []}],
        "newParticulars": [
            {"parentPath": "root.topics[0].subtopics[0].details[0].subdetails[0]", "particulars": ["Applies to all persons"]}
        ],
        "note": "",
    }
    agent, provider = _agent(json.dumps(reply))
    tree = await agent.enhance_tree("Polity", CHAPTER, SAMPLE_TREE)

    subtopics = tree["topics"][0]["subtopics"]
    assert [s["subtopic"] for s in subtopics] == ["Right to Equality", "Right to Freedom"]
    particulars = subtopics[0]["details"][0]["subdetails"][0]["particulars"]
    assert particulars[-1] == "Applies to all persons"
    assert len(SAMPLE_TREE["topics"][0]["subtopics"]) == 1
    assert "Right to Equality" in provider.prompts[0]


@pytest.mark.asyncio
async def test_map_chapter_generates_then_enhances(tmp_path):
    store = FileContentStore(tmp_path)
    agent, _ = _agent(
        json.dumps(SAMPLE_TREE),
        json.dumps({"newTopics": [{"topic": "Writs", "subtopics": []}]}),
    )

    first = await map_chapter(agent, store, "Polity", CHAPTER)
    assert first["action"] == "generated"
    second = await map_chapter(agent, store, "Polity", CHAPTER)
    assert second["action"] == "enhanced"

    stored = store.find_mapping("Polity", CHAPTER)
    assert [t["topic"] for t in stored["mappings"]["topics"]] == ["Fundamental Rights", "Writs"]

    overview = book_overview(store, "Polity")
    flags = {c["chapter"]: c["isMapped"] for c in overview["chapters"]}
    assert flags[CHAPTER] is True
    assert flags["Chapter 6 Citizenship"] is False


@pytest.mark.asyncio
async def test_map_book_skips_chapters_already_mapped(tmp_path):
    store = FileContentStore(tmp_path)
    store.save_mapping("CSAT", "Chapter 1 Maths and Reasoning", SAMPLE_TREE)
    agent, provider = _agent(json.dumps(SAMPLE_TREE))

    result = await map_book(agent, store, "CSAT")

    assert result["skipped"] == ["Chapter 1 Maths and Reasoning"]
    assert result["mapped"] == [{"chapter": "Chapter 2 English", "action": "generated"}]
    assert result["failed"] == []
    assert len(provider.prompts) == 1
    assert "Chapter 2 English" in provider.prompts[0]
    assert store.find_mapping("CSAT", "Chapter 1 Maths and Reasoning")["mappings"] == SAMPLE_TREE


@pytest.mark.asyncio
async def test_map_book_with_every_chapter_mapped_calls_no_oracle(tmp_path):
    store = FileContentStore(tmp_path)
    store.save_mapping("CSAT", "Chapter 1 Maths and Reasoning", SAMPLE_TREE)
    store.save_mapping("CSAT", "Chapter 2 English", SAMPLE_TREE)
    agent, provider = _agent()

    result = await map_book(agent, store, "CSAT")

    assert result["message"] == "All chapters for CSAT are already mapped"
    assert result["mapped"] == []
    assert len(result["skipped"]) == 2
    assert provider.prompts == []


@pytest.mark.asyncio
async def test_map_book_continues_past_failed_chapter(tmp_path):
    store = FileContentStore(tmp_path)
    agent, _ = _agent(json.dumps(SAMPLE_TREE), '{"note": "oops"}', '{"topics": "bad"}')

    result = await map_book(agent, store, "CSAT")

    assert [m["chapter"] for m in result["mapped"]] == ["Chapter 1 Maths and Reasoning"]
    assert [f["chapter"] for f in result["failed"]] == ["Chapter 2 English"]
    assert store.find_mapping("CSAT", "Chapter 2 English") is None

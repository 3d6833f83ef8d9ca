"""UPSC reference books by category and their chapter lists."""

from __future__ import annotations

from mcq_engine.core.errors import UnknownCategoryError

CATEGORY_BOOKS = {
    "Polity": {
        "book_name": "Laxmikanth Book",
        "description": "Laxmikanth book for Indian Polity",
    },
    "TamilnaduHistory": {
        "book_name": "Tamilnadu History Book",
        "description": "Published by Tamilnadu Government, covering Indian history",
    },
    "Spectrum": {
        "book_name": "Spectrum Book",
        "description": "Spectrum book for Modern Indian History",
    },
    "ArtAndCulture": {
        "book_name": "Nitin Singhania Art and Culture Book",
        "description": "Nitin Singhania book for Indian Art and Culture",
    },
    "FundamentalGeography": {
        "book_name": "NCERT Class 11th Fundamentals of Physical Geography",
        "description": "NCERT Class 11th book on Fundamental Geography",
    },
    "IndianGeography": {
        "book_name": "NCERT Class 11th Indian Geography",
        "description": "NCERT Class 11th book on Indian Geography",
    },
    "Science": {
        "book_name": "Disha IAS Previous Year Papers (Science Section)",
        "description": "Disha IAS book, Science section (Physics, Chemistry, Biology, Science & Technology)",
    },
    "Environment": {
        "book_name": "Shankar IAS Environment Book",
        "description": "Shankar IAS book for Environment",
    },
    "Economy": {
        "book_name": "Ramesh Singh Indian Economy Book",
        "description": "Ramesh Singh book for Indian Economy",
    },
    "CSAT": {
        "book_name": "Disha IAS Previous Year Papers (CSAT Section)",
        "description": "Disha IAS book, CSAT section",
    },
    "CurrentAffairs": {
        "book_name": "Vision IAS Current Affairs Magazine",
        "description": "Vision IAS Current Affairs resource",
    },
    "PreviousYearPapers": {
        "book_name": "Disha Publication's UPSC Prelims Previous Year Papers",
        "description": "Disha IAS book for Previous Year Papers",
    },
}

BOOK_CHAPTERS = {
    "Polity": [
        {"unit": "Chapter 1", "name": "Historical Background"},
        {"unit": "Chapter 2", "name": "Making of the Constitution"},
        {"unit": "Chapter 3", "name": "Salient Features of the Constitution"},
        {"unit": "Chapter 4", "name": "Preamble of the Constitution"},
        {"unit": "Chapter 5", "name": "Union and Its Territory"},
        {"unit": "Chapter 6", "name": "Citizenship"},
        {"unit": "Chapter 7", "name": "Fundamental Rights"},
        {"unit": "Chapter 8", "name": "Directive Principles of State Policy"},
        {"unit": "Chapter 9", "name": "Fundamental Duties"},
        {"unit": "Chapter 10", "name": "Amendment of the Constitution"},
        {"unit": "Chapter 11", "name": "Basic Structure of the Constitution"},
        {"unit": "Chapter 12", "name": "Parliamentary System"},
        {"unit": "Chapter 13", "name": "Federal System"},
        {"unit": "Chapter 14", "name": "Centre–State Relations"},
        {"unit": "Chapter 15", "name": "Inter-State Relations"},
    ],
    "Environment": [
        {"unit": "Chapter 10", "name": "Indian Biodiversity"},
        {"unit": "Chapter 11", "name": "Schedule Animals of Wildlife Protection Act, 1972"},
        {"unit": "Chapter 12", "name": "Animal Diversity of India"},
        {"unit": "Chapter 13", "name": "Plant Diversity of India"},
        {"unit": "Chapter 14", "name": "Marine Organisms"},
        {"unit": "Chapter 15", "name": "Protected Areas Network"},
        {"unit": "Chapter 16", "name": "Conservation Efforts"},
        {"unit": "Chapter 17", "name": "Climate Change"},
        {"unit": "Chapter 18", "name": "Ocean Acidification"},
        {"unit": "Chapter 19", "name": "Ozone Depletion"},
        {"unit": "Chapter 20", "name": "Impact of Climate Change – India"},
        {"unit": "Chapter 21", "name": "Mitigation Strategies"},
        {"unit": "Chapter 22", "name": "India and Climate Change"},
        {"unit": "Chapter 23", "name": "Climate Change Organisations"},
        {"unit": "Chapter 24", "name": "Agriculture"},
        {"unit": "Chapter 25", "name": "Acts and Policies"},
        {"unit": "Chapter 26", "name": "Institutions and Measures"},
        {"unit": "Chapter 27", "name": "Environmental Organisations"},
        {"unit": "Chapter 28", "name": "International Environmental Conventions"},
        {"unit": "Chapter 29", "name": "Environment Issues and Health Effects"},
    ],
    "Economy": [
        {"unit": "Chapter 1", "name": "Introduction"},
        {"unit": "Chapter 2", "name": "Growth, Development and Happiness"},
        {"unit": "Chapter 3", "name": "Evolution of the Indian Economy"},
        {"unit": "Chapter 4", "name": "Economic Planning"},
        {"unit": "Chapter 5", "name": "Planning in India"},
        {"unit": "Chapter 6", "name": "Economic Reforms"},
        {"unit": "Chapter 7", "name": "Inflation and Business Cycle"},
        {"unit": "Chapter 8", "name": "Agriculture and Food Management"},
        {"unit": "Chapter 9", "name": "Industry and Infrastructure"},
        {"unit": "Chapter 10", "name": "Services Sector"},
        {"unit": "Chapter 11", "name": "Indian Financial Market"},
        {"unit": "Chapter 12", "name": "Banking in India"},
        {"unit": "Chapter 13", "name": "Insurance in India"},
        {"unit": "Chapter 14", "name": "Security Market in India"},
        {"unit": "Chapter 15", "name": "External Sector in India"},
        {"unit": "Chapter 16", "name": "International Economic Organisations and India"},
        {"unit": "Chapter 17", "name": "Tax Structure in India"},
        {"unit": "Chapter 18", "name": "Public Finance in India"},
        {"unit": "Chapter 19", "name": "Sustainability and Climate Change: India and the World"},
        {"unit": "Chapter 20", "name": "Human Development in India"},
        {"unit": "Chapter 21", "name": "Burning Socio-Economic Issues"},
        {"unit": "Chapter 22", "name": "Economic Concepts and Terminologies"},
    ],
    "CSAT": [
        {"unit": "Chapter 1", "name": "Maths and Reasoning"},
        {"unit": "Chapter 2", "name": "English"},
    ],
    "CurrentAffairs": [
        {"unit": "Chapter 1", "name": "Polity and Governance"},
        {"unit": "Chapter 2", "name": "International Relations"},
        {"unit": "Chapter 3", "name": "Economy"},
        {"unit": "Chapter 4", "name": "Security"},
        {"unit": "Chapter 5", "name": "Environment"},
        {"unit": "Chapter 6", "name": "Social Issues"},
        {"unit": "Chapter 7", "name": "Science and Technology"},
        {"unit": "Chapter 8", "name": "Culture"},
        {"unit": "Chapter 9", "name": "Ethics"},
        {"unit": "Chapter 10", "name": "Schemes in News"},
        {"unit": "Chapter 11", "name": "Places in News"},
        {"unit": "Chapter 12", "name": "Personalities in News"},
    ],
    "PreviousYearPapers": [
        {"unit": "Chapter 1", "name": "History"},
        {"unit": "Chapter 2", "name": "Geography"},
        {"unit": "Chapter 3", "name": "Polity"},
        {"unit": "Chapter 4", "name": "Economy"},
        {"unit": "Chapter 5", "name": "Environment"},
        {"unit": "Chapter 6", "name": "Science"},
    ],
}


def chapter_display_name(chapter: dict) -> str:
    return f"{chapter.get('unit', '')} {chapter.get('name', '')}".strip()


def get_book(category: str) -> dict:
    book = CATEGORY_BOOKS.get(category)
    if book is None:
        raise UnknownCategoryError(f"Invalid category: {category}")
    return {"category": category, **book}


def list_chapters(category: str) -> list[str]:
    get_book(category)
    return [chapter_display_name(ch) for ch in BOOK_CHAPTERS.get(category, [])]


def full_chapter_name(category: str, chapter_key: str) -> str:
    """Resolve a bare chapter name ("Citizenship") to its display form ("Chapter 6 Citizenship")."""
    key = (chapter_key or "").strip().lower()
    for chapter in BOOK_CHAPTERS.get(category, []):
        full = chapter_display_name(chapter)
        if key in {full.lower(), chapter["name"].lower()}:
            return full
    return chapter_key


def is_known_chapter(category: str, chapter: str) -> bool:
    return chapter in list_chapters(category)

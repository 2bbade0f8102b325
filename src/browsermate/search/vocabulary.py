"""Bilingual vocabularies driving query classification and cleanup.

Each table is plain data: adding a language or an intent means adding rows,
not touching the query engine.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Pattern, Tuple

from browsermate.documents.models import ItemType

Intent = Literal["enumerate", "keyword"]

# Hiragana/Katakana, CJK Extension A, CJK Unified Ideographs, Hangul syllables
CJK_CHARS = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af"
CJK_RE = re.compile(f"[{CJK_CHARS}]")
CJK_RUN_RE = re.compile(f"[{CJK_CHARS}]+")
LATIN_RUN_RE = re.compile(r"[a-zA-Z]+")


@dataclass(frozen=True, slots=True)
class IntentRule:
    pattern: Pattern[str]
    language: str
    intent: Intent


@dataclass(frozen=True, slots=True)
class SourceKeyword:
    pattern: Pattern[str]
    language: str
    item_type: ItemType


@dataclass(frozen=True, slots=True)
class StopWord:
    pattern: Pattern[str]
    language: str


INTENT_RULES: Tuple[IntentRule, ...] = (
    IntentRule(re.compile(r"\b(?:list|show|display)\b"), "en", "enumerate"),
    IntentRule(re.compile(r"\bwhat\b.*\bdo\b.*\bhave\b"), "en", "enumerate"),
    IntentRule(re.compile(r"我的.*有什么"), "zh", "enumerate"),
    IntentRule(re.compile(r"显示.*所有"), "zh", "enumerate"),
    IntentRule(re.compile(r"列出"), "zh", "enumerate"),
)

SOURCE_KEYWORDS: Tuple[SourceKeyword, ...] = (
    SourceKeyword(re.compile(r"bookmark"), "en", "bookmark"),
    SourceKeyword(re.compile(r"书签"), "zh", "bookmark"),
    SourceKeyword(re.compile(r"history"), "en", "history"),
    SourceKeyword(re.compile(r"历史|浏览记录"), "zh", "history"),
    SourceKeyword(re.compile(r"reading.?list"), "en", "reading-list"),
    SourceKeyword(re.compile(r"阅读清单|阅读列表"), "zh", "reading-list"),
)

# CJK has no word boundaries, so those stop words are removed as substrings.
STOP_WORDS: Tuple[StopWord, ...] = (
    StopWord(re.compile(r"\b(?:list|show|find|get|my|the|a|an)\b"), "en"),
    StopWord(re.compile(r"我的|显示|列出|查找"), "zh"),
)

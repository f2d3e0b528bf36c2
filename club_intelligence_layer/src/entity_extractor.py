"""Entity, stat and time-frame extraction from raw question text.

``EntityExtractor.extract`` is a pure function of the question and the
pseudonym tables it was built with: it performs no I/O and keeps no state
between calls.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple
import logging
import re

from ..config.pseudonyms import (
    FIRST_PERSON_PSEUDONYMS,
    OPPOSITION_PREFIXES,
    STOP_WORDS,
    TEAM_KEYS,
    PseudonymTable,
    load_pseudonym_tables,
)
from .date_utils import normalize_season
from .fuzzy_resolver import STAT_TYPE, FuzzyResolver, similarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractedSpan:
    value: str
    type: str
    original_text: str
    position: int

    @property
    def end(self) -> int:
        return self.position + len(self.original_text)

    def overlaps(self, start: int, end: int) -> bool:
        return self.position < end and start < self.end


@dataclass(frozen=True)
class ExtractionResult:
    entities: Tuple[ExtractedSpan, ...] = ()
    stat_types: Tuple[ExtractedSpan, ...] = ()
    stat_indicators: Tuple[ExtractedSpan, ...] = ()
    question_types: Tuple[ExtractedSpan, ...] = ()
    negative_clauses: Tuple[ExtractedSpan, ...] = ()
    locations: Tuple[ExtractedSpan, ...] = ()
    time_frames: Tuple[ExtractedSpan, ...] = ()
    goal_involvements: bool = False

    def entities_of(self, entity_type: str) -> List[ExtractedSpan]:
        return [e for e in self.entities if e.type == entity_type]

    def distinct_stat_types(self) -> List[str]:
        seen: List[str] = []
        for span in self.stat_types:
            if span.value not in seen:
                seen.append(span.value)
        return seen

    def all_spans(self) -> List[ExtractedSpan]:
        return [
            *self.entities, *self.stat_types, *self.stat_indicators,
            *self.question_types, *self.negative_clauses, *self.locations,
            *self.time_frames,
        ]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class _CompiledEntry:
    variant: str
    canonical: str
    pattern: re.Pattern = field(repr=False)


_ENTITY_TABLE_TYPES = {key: "team" for key in TEAM_KEYS}

_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*"
_DATE = rf"(?:\d{{1,2}}[/-]\d{{1,2}}[/-]\d{{2,4}}|\d{{4}}-\d{{2}}-\d{{2}}|\d{{1,2}}\s+{_MONTH}\s+\d{{2,4}})"
_SEASON = r"(?:20\d{2}\s*[/-]\s*20\d{2}|20\d{2}[/-]?\d{2})"
_YEAR_OR_SEASON = rf"(?:{_SEASON}|(?:19|20)\d{{2}})"

# Structured time-frame patterns, applied in order before the pseudonym table.
_TIME_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("range", re.compile(rf"\bbetween\s+({_DATE})\s+and\s+({_DATE})\b", re.IGNORECASE)),
    ("range", re.compile(r"\bbetween\s+((?:19|20)\d{2})\s+and\s+((?:19|20)\d{2})\b", re.IGNORECASE)),
    ("since", re.compile(rf"\b(?:since|after)\s+(?:the\s+)?({_YEAR_OR_SEASON})(?:\s+season)?\b", re.IGNORECASE)),
    ("before", re.compile(rf"\bbefore\s+(?:the\s+)?({_YEAR_OR_SEASON})(?:\s+season)?\b", re.IGNORECASE)),
    ("last_season", re.compile(r"\b(?:last|previous)\s+season\b", re.IGNORECASE)),
    ("this_season", re.compile(r"\b(?:this|current)\s+season\b", re.IGNORECASE)),
    ("date", re.compile(rf"\b({_DATE})\b", re.IGNORECASE)),
    ("season", re.compile(rf"\b({_SEASON})\b", re.IGNORECASE)),
]

_FIRST_PERSON = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in sorted(FIRST_PERSON_PSEUDONYMS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_CAPITALIZED_WORD = re.compile(r"\b[A-Z][A-Za-z'\-]*[A-Za-z]")
_LOWER_WORD = re.compile(r"[a-z][a-z'\-]*[a-z]")
_TEAM_TOKEN = re.compile(r"^\d+(?:st|nd|rd|th)?$|^\d+s$", re.IGNORECASE)
_PRECEDING_WORDS = re.compile(r"(\w+)\W+(?:(\w+)\W+)?$")
_CURLY_QUOTES = str.maketrans({"’": "'", "‘": "'"})


class EntityExtractor:
    """Extract typed spans from a football stats question."""

    def __init__(self, tables: Optional[Dict[str, PseudonymTable]] = None, fuzzy_threshold: float = 0.7):
        self.logger = logging.getLogger(__name__)
        self.tables = tables or load_pseudonym_tables()
        self.fuzzy_threshold = fuzzy_threshold
        self._compiled: Dict[str, List[_CompiledEntry]] = {
            concept: self._compile_table(table) for concept, table in self.tables.items()
        }
        self._stat_variants = [
            variant.lower() for variants in self.tables["stat_types"].values() for variant in variants
        ]
        self._stat_resolver = FuzzyResolver(
            threshold=fuzzy_threshold, stat_pseudonyms=self.tables["stat_types"]
        )
        self.logger.debug(
            f"Compiled {sum(len(v) for v in self._compiled.values())} pseudonym variants"
        )

    def extract(self, question: str) -> ExtractionResult:
        """Extract every concept class from ``question``."""
        if not question or not question.strip():
            raise ValueError("Question cannot be empty")

        text = question.translate(_CURLY_QUOTES)

        entities = self._extract_table_entities(text)
        stat_types = self._match_table(text, "stat_types", lambda key: "stat_type")
        stat_indicators = self._match_table(text, "stat_indicators", lambda key: "stat_indicator")
        question_types = self._match_table(text, "question_types", lambda key: "question_type")
        negative_clauses = self._match_table(text, "negative_clauses", lambda key: "negative_clause")
        locations = self._match_table(
            text, "locations", lambda key: "ground" if key == "Pixham" else key
        )
        time_frames = self._extract_time_frames(text)

        claimed = [
            *entities, *stat_types, *stat_indicators, *question_types,
            *negative_clauses, *locations, *time_frames,
        ]
        entities.extend(self._extract_proper_nouns(text, claimed))
        entities.sort(key=lambda s: s.position)

        if not stat_types:
            stat_types = self._fuzzy_stat_types(text, claimed + entities)

        result = ExtractionResult(
            entities=tuple(entities),
            stat_types=tuple(stat_types),
            stat_indicators=tuple(stat_indicators),
            question_types=tuple(question_types),
            negative_clauses=tuple(negative_clauses),
            locations=tuple(locations),
            time_frames=tuple(time_frames),
            goal_involvements="goal involvement" in text.lower(),
        )
        self.logger.debug(
            f"Extracted entities={[(e.value, e.type) for e in result.entities]} "
            f"stats={[s.value for s in result.stat_types]} "
            f"time_frames={[(t.value, t.type) for t in result.time_frames]}"
        )
        return result

    # ---------- table matching ----------

    def _compile_table(self, table: PseudonymTable) -> List[_CompiledEntry]:
        entries = [
            _CompiledEntry(variant, canonical, self._compile_variant(variant))
            for canonical, variants in table.items()
            for variant in variants
        ]
        # Longest first so a short variant never pre-empts a longer phrase
        entries.sort(key=lambda e: len(e.variant), reverse=True)
        return entries

    def _compile_variant(self, variant: str) -> re.Pattern:
        escaped = re.escape(variant.strip()).replace("\\ ", r"\s+")
        return re.compile(r"\b" + escaped + r"\b", re.IGNORECASE)

    def _match_table(self, text: str, concept: str, type_for) -> List[ExtractedSpan]:
        spans: List[ExtractedSpan] = []
        for entry in self._compiled.get(concept, []):
            for m in entry.pattern.finditer(text):
                if any(s.overlaps(m.start(), m.end()) for s in spans):
                    continue
                spans.append(ExtractedSpan(entry.canonical, type_for(entry.canonical), m.group(0), m.start()))
        spans.sort(key=lambda s: s.position)
        return spans

    # ---------- entities ----------

    def _extract_table_entities(self, text: str) -> List[ExtractedSpan]:
        entities = [
            ExtractedSpan("I", "player", m.group(0), m.start())
            for m in _FIRST_PERSON.finditer(text)
        ]
        for span in self._match_table(text, "entities", lambda key: _ENTITY_TABLE_TYPES.get(key, "league")):
            if not any(e.overlaps(span.position, span.end) for e in entities):
                entities.append(span)
        return entities

    def _extract_proper_nouns(self, text: str, claimed: List[ExtractedSpan]) -> List[ExtractedSpan]:
        candidates: List[Tuple[int, int]] = []
        for m in _CAPITALIZED_WORD.finditer(text):
            start, end = m.start(), m.end()
            word = m.group(0)
            if word.lower().endswith("'s"):
                word = word[:-2]
                end -= 2
            if self._is_false_positive(word):
                continue
            if any(s.overlaps(start, end) for s in claimed):
                continue
            candidates.append((start, end))

        # Merge runs separated by a single whitespace character ("Luke Bangs")
        merged: List[Tuple[int, int]] = []
        for start, end in candidates:
            if merged:
                prev_start, prev_end = merged[-1]
                gap = text[prev_end:start]
                if len(gap) <= 1 and gap.strip() == "":
                    merged[-1] = (prev_start, end)
                    continue
            merged.append((start, end))

        spans: List[ExtractedSpan] = []
        seen = set()
        for start, end in merged:
            name = text[start:end]
            if name.lower() in seen:
                continue
            seen.add(name.lower())
            entity_type = "opposition" if self._follows_opposition_prefix(text, start) else "player"
            spans.append(ExtractedSpan(name, entity_type, name, start))
        return spans

    def _is_false_positive(self, word: str) -> bool:
        lowered = word.lower()
        if len(word) < 2 or lowered in STOP_WORDS:
            return True
        if _TEAM_TOKEN.match(word):
            return True
        return any(similarity(lowered, variant) > self.fuzzy_threshold for variant in self._stat_variants)

    def _follows_opposition_prefix(self, text: str, start: int) -> bool:
        m = _PRECEDING_WORDS.search(text[:start])
        if not m:
            return False
        last, before_last = m.group(2) or m.group(1), m.group(1) if m.group(2) else None
        if last.lower() in OPPOSITION_PREFIXES:
            return True
        return last.lower() == "the" and bool(before_last) and before_last.lower() in OPPOSITION_PREFIXES

    # ---------- stats ----------

    def _fuzzy_stat_types(self, text: str, claimed: List[ExtractedSpan]) -> List[ExtractedSpan]:
        spans: List[ExtractedSpan] = []
        lowered = text.lower()
        for m in _LOWER_WORD.finditer(lowered):
            word = m.group(0)
            if len(word) < 3 or word in STOP_WORDS:
                continue
            if any(s.overlaps(m.start(), m.end()) for s in claimed):
                continue
            canonical = self._stat_resolver.resolve(word, STAT_TYPE)
            if canonical:
                self.logger.debug(f"Fuzzy stat match '{word}' -> '{canonical}'")
                spans.append(ExtractedSpan(canonical, "stat_type", text[m.start():m.end()], m.start()))
        return spans

    # ---------- time frames ----------

    def _extract_time_frames(self, text: str) -> List[ExtractedSpan]:
        spans: List[ExtractedSpan] = []
        for frame_type, pattern in _TIME_PATTERNS:
            for m in pattern.finditer(text):
                if any(s.overlaps(m.start(), m.end()) for s in spans):
                    continue
                spans.append(ExtractedSpan(self._time_value(frame_type, m), frame_type, m.group(0), m.start()))

        for span in self._match_table(text, "time_frames", lambda key: key):
            if not any(s.overlaps(span.position, span.end) for s in spans):
                spans.append(span)
        spans.sort(key=lambda s: s.position)
        return spans

    def _time_value(self, frame_type: str, m: re.Match) -> str:
        if frame_type == "range":
            return f"{m.group(1)} to {m.group(2)}"
        if frame_type in ("last_season", "this_season"):
            return frame_type
        if frame_type == "date":
            return m.group(1)
        raw = re.sub(r"\s+", "", m.group(1))
        return normalize_season(raw) or raw

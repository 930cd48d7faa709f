"""Fuzzy matching and search over clipboard history.

Matching tries strategies in a fixed order (exact, prefix, word boundary,
substring, ordered subsequence) and returns the first that succeeds. Results
are ordered by strategy tier first and recency second. Between equally
recent items, content and filename matches come before path matches, which
come before source-app matches; the numeric score only picks the best field
within an item and breaks the remaining ties.
"""

import re
from dataclasses import dataclass
from enum import Enum

from clipstash.models import ClipboardItem, ContentType

Span = tuple[int, int]  # (start, length) in the candidate string

_WORD = re.compile(r"[^\W_]+")

EXACT_SCORE = 1.0
PREFIX_SCORE = 0.9
WORD_BOUNDARY_SCORE = 0.8
SUBSTRING_SCORE = 0.7
FUZZY_SCORE = 0.5

CONSECUTIVE_BONUS = 0.05
CAMEL_CASE_BONUS = 0.03
LENGTH_PENALTY = 0.001
POSITION_PENALTY = LENGTH_PENALTY * 0.5
MIN_SCORE = 0.1


class MatchType(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    WORD_BOUNDARY = "wordBoundary"
    SUBSTRING = "substring"
    FUZZY = "fuzzy"

    @property
    def tier(self) -> int:
        """Lower sorts first. Subsequence matches always rank below direct ones."""
        return 1 if self is MatchType.FUZZY else 0


@dataclass(frozen=True)
class MatchResult:
    match_type: MatchType
    score: float
    spans: tuple[Span, ...]


def _fold(text: str) -> str:
    # Lowercase one character at a time so spans line up with the original.
    return "".join(c if len(c.lower()) != 1 else c.lower() for c in text)


def _floor(score: float) -> float:
    return max(MIN_SCORE, score)


def merge_spans(spans: list[Span]) -> tuple[Span, ...]:
    merged: list[Span] = []
    for start, length in spans:
        if merged and merged[-1][0] + merged[-1][1] == start:
            prev_start, prev_length = merged[-1]
            merged[-1] = (prev_start, prev_length + length)
        else:
            merged.append((start, length))
    return tuple(merged)


class FuzzyMatcher:
    def __init__(self, fuzzy_enabled: bool = True):
        self.fuzzy_enabled = fuzzy_enabled

    def match(self, query: str, candidate: str) -> MatchResult | None:
        query = query.strip()
        if not query or not candidate:
            return None

        lower_query = _fold(query)
        lower_text = _fold(candidate)

        for strategy in (self._exact, self._prefix, self._word_boundary, self._substring):
            result = strategy(lower_query, lower_text)
            if result is not None:
                return result
        if self.fuzzy_enabled:
            return self._subsequence(lower_query, candidate, lower_text)
        return None

    @staticmethod
    def _exact(query: str, text: str) -> MatchResult | None:
        if text != query:
            return None
        return MatchResult(MatchType.EXACT, EXACT_SCORE, ((0, len(text)),))

    @staticmethod
    def _prefix(query: str, text: str) -> MatchResult | None:
        if not text.startswith(query):
            return None
        score = _floor(PREFIX_SCORE - len(text) * LENGTH_PENALTY)
        return MatchResult(MatchType.PREFIX, score, ((0, len(query)),))

    @staticmethod
    def _word_boundary(query: str, text: str) -> MatchResult | None:
        for word in _WORD.finditer(text):
            if word.group().startswith(query):
                score = _floor(WORD_BOUNDARY_SCORE - len(text) * LENGTH_PENALTY)
                return MatchResult(MatchType.WORD_BOUNDARY, score, ((word.start(), len(query)),))
        return None

    @staticmethod
    def _substring(query: str, text: str) -> MatchResult | None:
        position = text.find(query)
        if position < 0:
            return None
        score = _floor(SUBSTRING_SCORE - len(text) * LENGTH_PENALTY - position * POSITION_PENALTY)
        return MatchResult(MatchType.SUBSTRING, score, ((position, len(query)),))

    @staticmethod
    def _subsequence(query: str, original: str, text: str) -> MatchResult | None:
        matched: list[Span] = []
        bonus = 0.0
        last_index = -2
        q = 0

        for i, ch in enumerate(text):
            if q == len(query):
                break
            if ch != query[q]:
                continue
            if i == last_index + 1:
                bonus += CONSECUTIVE_BONUS
            if i > 0 and original[i].isupper() and original[i - 1].islower():
                bonus += CAMEL_CASE_BONUS
            matched.append((i, 1))
            last_index = i
            q += 1

        if q != len(query):
            return None

        spread = matched[-1][0] - matched[0][0]
        score = _floor(FUZZY_SCORE + bonus - len(original) * LENGTH_PENALTY - spread * POSITION_PENALTY)
        return MatchResult(MatchType.FUZZY, score, merge_spans(matched))


class SearchField(str, Enum):
    CONTENT = "content"
    FILENAME = "filename"
    PATH = "path"
    SOURCE_APP = "sourceApp"


FIELD_WEIGHTS = {
    SearchField.CONTENT: 1.0,
    SearchField.FILENAME: 1.2,
    SearchField.PATH: 1.0,
    SearchField.SOURCE_APP: 0.7,
}

# Content matches rank above path and source-app matches of the same tier and age.
FIELD_RANK = {
    SearchField.CONTENT: 0,
    SearchField.FILENAME: 0,
    SearchField.PATH: 1,
    SearchField.SOURCE_APP: 2,
}


@dataclass(frozen=True)
class SearchResult:
    item: ClipboardItem
    score: float
    match_type: MatchType
    spans: tuple[Span, ...] = ()
    field: SearchField | None = None


class SearchEngine:
    """Scores a snapshot of items against a query, entirely in memory.

    With fuzzy matching off, subsequence matches are disabled and only the
    primary field of each item is searched (content, or filename for files).
    """

    def __init__(self, fuzzy_matching_enabled: bool = True):
        self.fuzzy_matching_enabled = fuzzy_matching_enabled

    def search(self, query: str, items: list[ClipboardItem]) -> list[SearchResult]:
        query = query.strip()
        if not query:
            return [SearchResult(item, EXACT_SCORE, MatchType.EXACT) for item in items]

        matcher = FuzzyMatcher(self.fuzzy_matching_enabled)
        results = [r for r in (self._match_item(matcher, query, item) for item in items) if r is not None]
        # sorted() is stable, so equal keys keep their input order.
        return sorted(
            results,
            key=lambda r: (r.match_type.tier, -r.item.timestamp.timestamp(), FIELD_RANK.get(r.field, 0), -r.score),
        )

    def _fields(self, item: ClipboardItem) -> list[tuple[SearchField, str]]:
        broad = self.fuzzy_matching_enabled
        fields = []
        if item.content_type == ContentType.FILE_URL:
            filename = item.display_filename
            if filename:
                fields.append((SearchField.FILENAME, filename))
            if broad:
                fields.append((SearchField.PATH, item.content))
        else:
            fields.append((SearchField.CONTENT, item.content))
        if broad and item.source_app:
            fields.append((SearchField.SOURCE_APP, item.source_app))
        return fields

    def _match_item(self, matcher: FuzzyMatcher, query: str, item: ClipboardItem) -> SearchResult | None:
        best: SearchResult | None = None
        for field, text in self._fields(item):
            match = matcher.match(query, text)
            if match is None:
                continue
            score = match.score * FIELD_WEIGHTS[field]
            if best is None or score > best.score:
                # Source-app spans point into the label, not the content.
                spans = () if field == SearchField.SOURCE_APP else match.spans
                best = SearchResult(item, score, match.match_type, spans, field)
        return best

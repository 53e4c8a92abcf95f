"""Suppression of repeated and overlapping transcript segments.

Consecutive recognition windows share audio context, so engines regularly
re-emit text they already produced, sometimes verbatim and sometimes with a
word or two added. SegmentDeduplicator compares each new segment against a
small history of accepted segments and rejects near-duplicates.
"""

import logging
import re
from collections import Counter, deque
from collections.abc import Iterator

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[\w']+")


def words_of(text: str) -> list[str]:
    """Lowercase word tokens, ignoring punctuation."""
    return _WORD.findall(text.lower())


def _matched_words(source: list[str], reference: list[str]) -> int:
    """Count words of ``source`` found in ``reference`` (multiset match)."""
    available = Counter(reference)
    matches = 0
    for word in source:
        if available[word] > 0:
            matches += 1
            available[word] -= 1
    return matches


def similarity_score(
    candidate: str,
    previous: str,
    short_phrase_words: int = 3,
    short_phrase_similarity: float = 0.4,
) -> float:
    """Bag-of-words similarity in [0, 1], relative to the candidate's length.

    Phrases of ``short_phrase_words`` words or fewer collide by chance too
    often to compare, so they get a fixed low score instead.
    """
    words_a = words_of(candidate)
    words_b = words_of(previous)

    if len(words_a) <= short_phrase_words or len(words_b) <= short_phrase_words:
        return short_phrase_similarity
    if not words_a:
        return 0.0
    return _matched_words(words_a, words_b) / len(words_a)


def contains_substantial_overlap(
    prior: str,
    candidate: str,
    threshold: float = 0.7,
    min_prior_words: int = 4,
    min_candidate_words: int = 4,
) -> bool:
    """Whether ``candidate`` is mostly contained in ``prior``."""
    # Texts of very different size are treated as different utterances
    if len(prior) > 2 * len(candidate) or len(candidate) > 2 * len(prior):
        return False

    prior_words = words_of(prior)
    candidate_words = words_of(candidate)
    if len(prior_words) < min_prior_words or len(candidate_words) < min_candidate_words:
        return False

    return _matched_words(candidate_words, prior_words) / len(candidate_words) >= threshold


class RecentSegmentHistory:
    """Fixed-capacity FIFO of recently accepted segments."""

    def __init__(self, capacity: int = 10):
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        self._segments: deque[str] = deque(maxlen=capacity)

    def append(self, segment: str) -> None:
        self._segments.append(segment)

    def clear(self) -> None:
        self._segments.clear()

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __contains__(self, segment: object) -> bool:
        return segment in self._segments

    def as_list(self) -> list[str]:
        return list(self._segments)


class SegmentDeduplicator:
    """Accept or reject candidate segments against recent history.

    A candidate is rejected when, for any history entry, it is word-for-word
    identical (case-insensitive), its similarity score exceeds
    ``similarity_threshold``, or it is substantially contained in that entry.
    Accepted candidates are appended to the history.

    Example:
        dedup = SegmentDeduplicator()
        dedup.accept("the quick brown fox")        # True
        dedup.accept("the quick brown fox")        # False (exact repeat)
        dedup.accept("the quick brown fox jumps")  # False (overlap)

    """

    def __init__(
        self,
        capacity: int = 10,
        similarity_threshold: float = 0.6,
        containment_threshold: float = 0.7,
        short_phrase_words: int = 3,
        min_containment_words: int = 4,
        short_phrase_similarity: float = 0.4,
    ):
        self.history = RecentSegmentHistory(capacity)
        self.similarity_threshold = similarity_threshold
        self.containment_threshold = containment_threshold
        self.short_phrase_words = short_phrase_words
        self.min_containment_words = min_containment_words
        self.short_phrase_similarity = short_phrase_similarity

    @classmethod
    def from_config(cls, config) -> "SegmentDeduplicator":
        """Build from a StreamingConfig (or anything with the same fields)."""
        return cls(
            capacity=config.history_size,
            similarity_threshold=config.similarity_threshold,
            containment_threshold=config.containment_threshold,
            short_phrase_words=config.short_phrase_words,
            min_containment_words=config.min_containment_words,
            short_phrase_similarity=config.short_phrase_similarity,
        )

    def is_duplicate(self, candidate: str) -> bool:
        candidate_words = words_of(candidate)
        if not candidate_words:
            return True

        for previous in self.history:
            if words_of(previous) == candidate_words:
                return True

            score = similarity_score(
                candidate,
                previous,
                short_phrase_words=self.short_phrase_words,
                short_phrase_similarity=self.short_phrase_similarity,
            )
            if score > self.similarity_threshold:
                return True

            if contains_substantial_overlap(
                previous,
                candidate,
                threshold=self.containment_threshold,
                min_prior_words=self.min_containment_words,
                min_candidate_words=self.short_phrase_words + 1,
            ):
                return True
        return False

    def accept(self, candidate: str) -> bool:
        if self.is_duplicate(candidate):
            logger.debug("Skipping duplicate segment: %s", candidate)
            return False
        self.history.append(candidate)
        return True

    def clear(self) -> None:
        self.history.clear()


__all__ = [
    "RecentSegmentHistory",
    "SegmentDeduplicator",
    "contains_substantial_overlap",
    "similarity_score",
    "words_of",
]

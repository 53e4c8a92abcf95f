"""Cleanup of raw recognizer output.

Recognition engines emit text with timestamp annotations, non-speech markers
such as ``[MUSIC]`` or ``(applause)``, stray spacing before punctuation and,
in real-time use, stuttered filler words and repeated phrases. TextNormalizer
turns one engine-reported unit of text into a clean segment, or an empty
string when nothing speech-like remains.
"""

import logging
import re

logger = logging.getLogger(__name__)

NON_SPEECH_MARKERS = frozenset(
    {
        "MUSIC",
        "MUSIC PLAYING",
        "APPLAUSE",
        "LAUGHTER",
        "NOISE",
        "SILENCE",
        "BLANK_AUDIO",
        "INAUDIBLE",
        "CROSSTALK",
        "SPEAKING FOREIGN LANGUAGE",
        "SPEAKING NON-ENGLISH",
        "SIGH",
        "SIGHS",
    }
)

FILLER_WORDS = ("hmm", "um", "uh", "uhh", "like", "so", "yeah")

_TIMESTAMP_RANGE = re.compile(r"\[\d{2}:\d{2}:\d{2}[.,]\d{3}\s*-->\s*\d{2}:\d{2}:\d{2}[.,]\d{3}\]")
_SINGLE_BRACKETED = re.compile(r"^\[([^\[\]]*)\]$")
_ASTERISK_EFFECT = re.compile(r"\*[^*]+\*")
_PAREN_NOISE = re.compile(
    r"\([^)]*\b(?:music|noise|applause|laughter|sighs?|silence|inaudible|crosstalk)\b[^)]*\)",
    re.IGNORECASE,
)
_BRACKET_NOISE = re.compile(
    r"\[\s*(?:"
    + "|".join(re.escape(marker).replace(r"\ ", r"[\s_]+") for marker in sorted(NON_SPEECH_MARKERS, key=len, reverse=True))
    + r")\s*\]",
    re.IGNORECASE,
)
_FILLER_RUNS = [
    re.compile(rf"\b({re.escape(word)})\b(?:\s*,?\s*\b{re.escape(word)}\b)+", re.IGNORECASE) for word in FILLER_WORDS
]
_WHITESPACE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,?!;:])")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

_DIAGNOSTIC_PREFIXES = ("whisper_", "system_info:", "main:", "init:")


def _marker_key(token: str) -> str:
    return _WHITESPACE.sub(" ", token.replace("_", " ")).strip().upper()


_MARKER_KEYS = frozenset(_marker_key(marker) for marker in NON_SPEECH_MARKERS)


def is_non_speech_marker(token: str) -> bool:
    """Whether ``token`` (without brackets) names a known non-speech marker."""
    return _marker_key(token) in _MARKER_KEYS


def strip_timestamps(text: str) -> str:
    return _TIMESTAMP_RANGE.sub("", text)


def is_diagnostic_line(line: str) -> bool:
    """Classify an engine output line as progress/diagnostic output.

    Bracketed status lines are diagnostics, except lines that start with a
    timestamp range and carry recognized text after it.
    """
    trimmed = line.strip()
    if not trimmed:
        return True

    if trimmed.startswith("["):
        match = _TIMESTAMP_RANGE.match(trimmed)
        if match is None:
            return True
        return not trimmed[match.end() :].strip()

    if trimmed.startswith(_DIAGNOSTIC_PREFIXES):
        return True
    return "progress" in trimmed.lower()


def collapse_fillers(text: str) -> str:
    """Collapse immediate repeats of filler words ("um um um" -> "um")."""
    for pattern in _FILLER_RUNS:
        text = pattern.sub(r"\1", text)
    return text


def _dedupe_phrases(words: list[str]) -> list[str]:
    cleaned: list[str] = []
    i = 0
    while i < len(words):
        skip = 0
        for phrase_len in range(3, 6):
            if i + phrase_len * 2 > len(words):
                break
            if words[i : i + phrase_len] == words[i + phrase_len : i + phrase_len * 2]:
                skip = phrase_len
                break
        if skip:
            cleaned.extend(words[i : i + skip])
            i += skip * 2
        else:
            cleaned.append(words[i])
            i += 1
    return cleaned


def remove_repeated_phrases(text: str) -> str:
    """Drop immediately repeated 3-5 word phrases inside longer sentences.

    Real-time decoding of overlapping windows often repeats a short phrase
    ("I think that I think that we should"). Sentences shorter than six words
    are left alone.
    """
    sentences = []
    for sentence in _SENTENCE_SPLIT.split(text):
        words = sentence.split()
        if len(words) < 6:
            sentences.append(sentence)
            continue
        sentences.append(" ".join(_dedupe_phrases(words)))
    return " ".join(sentences)


class TextNormalizer:
    """Turns raw recognizer lines into clean transcript segments.

    Unknown bracketed tokens are kept verbatim: only recognized non-speech
    markers are dropped.

    Example:
        normalizer = TextNormalizer()
        normalizer.normalize("[00:00:00.000 --> 00:00:02.000]  hello world .")
        # -> "Hello world."

    """

    def __init__(self, collapse_repeats: bool = True):
        self.collapse_repeats = collapse_repeats

    def normalize(self, raw: str) -> str:
        if not raw:
            return ""

        text = strip_timestamps(raw).strip()
        if not text:
            return ""

        bracketed = _SINGLE_BRACKETED.match(text)
        if bracketed is not None:
            if is_non_speech_marker(bracketed.group(1)):
                logger.debug("Dropping non-speech marker: %s", text)
                return ""
            return text

        text = _ASTERISK_EFFECT.sub(" ", text)
        text = _PAREN_NOISE.sub(" ", text)
        text = _BRACKET_NOISE.sub(" ", text)

        if self.collapse_repeats:
            text = collapse_fillers(text)
            text = remove_repeated_phrases(_WHITESPACE.sub(" ", text).strip())

        text = _WHITESPACE.sub(" ", text).strip()
        text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)

        # Leading punctuation left behind by a removed marker
        text = text.lstrip(",;: ")
        if text:
            text = text[0].upper() + text[1:]
        return text.strip()

    __call__ = normalize


_default_normalizer = TextNormalizer()


def normalize_transcription_text(text: str) -> str:
    """Normalize one line of recognizer output with default settings."""
    return _default_normalizer.normalize(text)


__all__ = [
    "NON_SPEECH_MARKERS",
    "TextNormalizer",
    "collapse_fillers",
    "is_diagnostic_line",
    "is_non_speech_marker",
    "normalize_transcription_text",
    "remove_repeated_phrases",
    "strip_timestamps",
]

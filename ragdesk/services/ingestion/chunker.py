"""Paragraph preprocessing and sentence-packing chunker.

Two entry points feed the indexing pipeline:

1. :meth:`TextChunker.preprocess` -- blank-line paragraph split with
   whitespace normalisation; paragraphs shorter than the minimum length
   are noise (page numbers, headers) and are dropped.

2. :meth:`TextChunker.split_into_chunks` -- sentence-level greedy packing
   into chunks of at most ``max_size`` characters.  A single sentence
   longer than ``max_size`` becomes its own (oversized) chunk; sentences
   are never cut.

Both are pure and deterministic for a given input.
"""

from __future__ import annotations

import re
from collections import Counter

import structlog

logger = structlog.get_logger(logger_name=__name__)

MIN_CHUNK_LENGTH = 50
DEFAULT_MAX_CHUNK_SIZE = 500

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_WHITESPACE_RE = re.compile(r"\s+")
# A sentence is a run of non-terminators plus the terminator run that ends it.
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*|[.!?]+")
_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)
_HANGUL_RE = re.compile(r"[가-힣]")
_LATIN_RE = re.compile(r"[A-Za-z]")


class TextChunker:
    """Splits extracted document text into retrieval units.

    Parameters
    ----------
    max_size:
        Default upper bound, in characters, for packed chunks.
    min_length:
        Paragraphs and chunks shorter than this are discarded.
    """

    def __init__(
        self, max_size: int = DEFAULT_MAX_CHUNK_SIZE, min_length: int = MIN_CHUNK_LENGTH
    ) -> None:
        self._max_size = max_size
        self._min_length = min_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def preprocess(self, text: str) -> list[str]:
        """Split *text* into normalised paragraphs, dropping short ones."""
        if not text or not text.strip():
            return []

        paragraphs: list[str] = []
        for raw in _PARAGRAPH_BREAK_RE.split(text):
            paragraph = _WHITESPACE_RE.sub(" ", raw).strip()
            if len(paragraph) >= self._min_length:
                paragraphs.append(paragraph)
        return paragraphs

    def split_into_chunks(self, text: str, max_size: int | None = None) -> list[str]:
        """Greedily pack sentences of *text* into chunks of at most *max_size* chars.

        Sentences inside a chunk are joined with single spaces.  Chunks
        shorter than the minimum length are dropped, so every returned
        chunk has at least ``min_length`` characters.
        """
        limit = max_size if max_size is not None else self._max_size
        sentences = self._split_sentences(text)

        chunks: list[str] = []
        current = ""
        for sentence in sentences:
            candidate = f"{current} {sentence}" if current else sentence
            if current and len(candidate) > limit:
                chunks.append(current)
                current = sentence
            else:
                current = candidate
        if current:
            chunks.append(current)

        kept = [c for c in chunks if len(c) >= self._min_length]
        logger.debug(
            "text_chunked",
            sentences=len(sentences),
            packed=len(chunks),
            kept=len(kept),
            max_size=limit,
        )
        return kept

    @staticmethod
    def extract_keywords(text: str, top_n: int = 10) -> list[str]:
        """Return the *top_n* most frequent words longer than three letters.

        Ties keep first-appearance order.
        """
        words = [w.lower() for w in _WORD_RE.findall(text) if len(w) > 3]
        return [word for word, _ in Counter(words).most_common(top_n)]

    @staticmethod
    def detect_language(text: str) -> str:
        """Crude script check: ``"ko"`` when Hangul outnumbers Latin letters, else ``"en"``."""
        hangul = len(_HANGUL_RE.findall(text))
        latin = len(_LATIN_RE.findall(text))
        return "ko" if hangul > latin else "en"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        sentences: list[str] = []
        for match in _SENTENCE_RE.finditer(text or ""):
            sentence = _WHITESPACE_RE.sub(" ", match.group()).strip()
            if sentence and not _is_punctuation_only(sentence):
                sentences.append(sentence)
        return sentences


def _is_punctuation_only(sentence: str) -> bool:
    return all(ch in ".!? " for ch in sentence)

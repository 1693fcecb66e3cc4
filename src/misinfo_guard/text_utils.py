from __future__ import annotations

import re
from typing import List

_WORD_RE = re.compile(r"[a-z0-9]+(?:['\-][a-z0-9]+)*")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?;])\s+|\n+")
_WHITESPACE_RE = re.compile(r"\s+")

STOPWORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "if", "then", "so", "of", "to", "in", "on",
        "at", "by", "for", "with", "from", "as", "into", "about", "over", "after", "before",
        "is", "are", "was", "were", "be", "been", "being", "it", "its", "this", "that",
        "these", "those", "there", "their", "they", "them", "he", "she", "we", "you", "your",
        "i", "me", "my", "our", "us", "his", "her", "which", "who", "whom", "what", "when",
        "where", "how", "why", "do", "does", "did", "has", "have", "had", "will", "would",
        "can", "could", "should", "may", "might", "must", "shall", "also", "just", "very",
        "more", "most", "many", "much", "some", "such", "than", "too", "all", "any", "each",
        "other", "only", "own", "same", "get", "got", "like", "make", "makes", "even",
        "especially", "because", "while", "once", "up", "out", "off", "again", "here",
        "without", "you're", "they're", "it's", "i'm", "we're", "that's", "there's",
    }
)

_GRAMMATICAL_NEGATIONS = frozenset(
    {"not", "no", "never", "none", "nor", "neither", "cannot", "nothing"}
)

NEGATION_CUES = _GRAMMATICAL_NEGATIONS | frozenset(
    {
        "myth", "myths", "false", "misconception", "unproven", "ineffective", "fraudulent",
        "retracted", "debunked",
    }
)

# Person nouns that should share a key with the condition they name.
_STEM_ALIASES = {"diabetic": "diabet", "asthmatic": "asthma", "hypertensiv": "hypertension"}


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_quotes(text: str) -> str:
    return (
        text.replace("’", "'")
        .replace("‘", "'")
        .replace("“", '"')
        .replace("”", '"')
    )


def words(text: str) -> List[str]:
    return _WORD_RE.findall(normalize_quotes(text).lower())


def stem(word: str) -> str:
    """Crude suffix stripping so plural and inflected forms share a key."""
    if len(word) <= 3:
        return word
    if word.endswith("ies") and len(word) > 4:
        word = word[:-3] + "y"
    elif word.endswith("es") and word[:-2].endswith(("s", "x", "ch", "sh")):
        word = word[:-2]
    elif word.endswith("s") and not word.endswith(("ss", "us", "is")):
        word = word[:-1]
    if word.endswith("ing") and len(word) > 5:
        word = word[:-3]
    elif word.endswith("ed") and len(word) > 4:
        word = word[:-2]
    if word.endswith("e") and len(word) > 3:
        word = word[:-1]
    return _STEM_ALIASES.get(word, word)


def content_terms(text: str) -> List[str]:
    return [
        stem(word)
        for word in words(text)
        if len(word) > 1
        and word not in STOPWORDS
        and word not in _GRAMMATICAL_NEGATIONS
        and not word.endswith("n't")
    ]


def is_negated(text: str) -> bool:
    for word in words(text):
        if word in NEGATION_CUES or word.endswith("n't"):
            return True
    return False


def split_sentences(text: str) -> List[str]:
    sentences: List[str] = []
    for chunk in _SENTENCE_SPLIT_RE.split(text):
        sentence = normalize_whitespace(chunk)
        if sentence:
            sentences.append(sentence)
    return sentences


def truncate_words(text: str, max_words: int) -> str:
    parts = text.split()
    if len(parts) <= max_words:
        return text
    return " ".join(parts[:max_words]).rstrip(",;:") + "..."


def truncate_chars(text: str, limit: int) -> str:
    """Cut at the last whitespace before ``limit`` so the result is stable."""
    if len(text) <= limit:
        return text
    cut = text.rfind(" ", 0, limit + 1)
    if cut <= 0:
        cut = limit
    return text[:cut].rstrip()

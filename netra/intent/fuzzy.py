"""
Approximate string matching for noisy speech transcripts.

Speech recognizers mangle short command words ("skan" for "scan",
"stob" for "stop"). Keywords are matched in three steps:

1. Exact whole-word match (case-insensitive) wins immediately.
2. Multi-word keywords slide a same-width window over the transcript words.
3. Single-word keywords are compared against every transcript word.

Steps 2 and 3 accept a candidate when its edit distance divided by the
longer length is within the threshold.
"""

import re
from typing import Iterable

DEFAULT_THRESHOLD = 0.35

# Short tokens: one edit is already a large fraction of the word
SHORT_WORD_LENGTH = 4
SHORT_WORD_THRESHOLD = 0.2

_NAME_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")


def distance(a: str, b: str) -> int:
    """Levenshtein edit distance between two strings.

    Insertion, deletion and substitution each cost 1. The full
    (len(b)+1) x (len(a)+1) matrix is built, rows indexed by ``b``.
    """
    an = len(a) if a else 0
    bn = len(b) if b else 0
    if an == 0:
        return bn
    if bn == 0:
        return an

    matrix = [[0] * (an + 1) for _ in range(bn + 1)]
    for i in range(bn + 1):
        matrix[i][0] = i
    for j in range(an + 1):
        matrix[0][j] = j

    for i in range(1, bn + 1):
        for j in range(1, an + 1):
            if b[i - 1] == a[j - 1]:
                matrix[i][j] = matrix[i - 1][j - 1]
            else:
                matrix[i][j] = min(
                    matrix[i - 1][j - 1],  # substitution
                    matrix[i][j - 1],  # insertion
                    matrix[i - 1][j],  # deletion
                ) + 1

    return matrix[bn][an]


def normalized_distance(a: str, b: str) -> float:
    """Edit distance scaled by the longer of the two strings (0.0 = equal)."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return distance(a, b) / longest


def matches(transcript: str, keyword: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """
    Check whether a keyword occurs (approximately) in a transcript.

    Args:
        transcript: Recognized speech
        keyword: Command word or phrase, possibly multi-word
        threshold: Maximum normalized distance for a fuzzy hit

    Returns:
        True if the keyword matches exactly on word boundaries or a word
        window is within the threshold.
    """
    t_lower = transcript.lower()
    k_lower = keyword.lower().strip()
    if not k_lower:
        return False

    # Word-boundary match keeps "cup" from matching "hiccup"
    if re.search(rf"\b{re.escape(k_lower)}\b", t_lower):
        return True

    t_words = t_lower.split()
    k_words = k_lower.split()

    if len(k_words) > 1:
        if len(t_words) < len(k_words):
            return False
        width = len(k_words)
        for i in range(len(t_words) - width + 1):
            window = " ".join(t_words[i:i + width])
            if normalized_distance(window, k_lower) <= threshold:
                return True
        return False

    for word in t_words:
        local_threshold = SHORT_WORD_THRESHOLD if len(word) < SHORT_WORD_LENGTH else threshold
        if normalized_distance(word, k_lower) <= local_threshold:
            return True
    return False


def matches_any(
    transcript: str, keywords: Iterable[str], threshold: float = DEFAULT_THRESHOLD
) -> bool:
    """True if any keyword of a command set matches the transcript."""
    return any(matches(transcript, k, threshold) for k in keywords)


def normalize_name(name: str) -> str:
    """Lowercase an entity label and strip punctuation for matching."""
    return _NAME_PUNCTUATION.sub("", name.lower()).strip()

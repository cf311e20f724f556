"""String similarity scorers for party names.

All scorers are pure and symmetric and return a value in [0, 1]. Inputs are
put into a canonical order before scoring because Jaro-Winkler matching is
greedy and can differ by a hair depending on argument order.
"""

import re
from typing import List, Optional, Tuple

from rapidfuzz.distance import JaroWinkler, Levenshtein

_VOWELS = frozenset("AEIOU")
_SOFTENERS = frozenset("EIY")

_LEADING_ARTICLE = "the"
CORPORATE_SUFFIXES = frozenset({
    "inc",
    "incorporated",
    "corp",
    "corporation",
    "llc",
    "ltd",
    "limited",
    "plc",
    "co",
    "company",
})

_DROPPED_PUNCTUATION = re.compile(r"[.'’]")
_NON_WORD = re.compile(r"[^a-z0-9\s]+")
_WHITESPACE = re.compile(r"\s+")
_NON_LETTER = re.compile(r"[^A-Z]")


def _ordered(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


def normalize_legal_name(name: Optional[str]) -> str:
    """Lowercase ``name``, strip punctuation, a leading "the" and trailing corporate suffixes.

    "The Goldman Sachs Group, Inc." and "Goldman Sachs Group Inc" both become
    "goldman sachs group". A name that consists only of suffixes is kept as-is
    rather than reduced to nothing.
    """
    if not name:
        return ""
    text = _DROPPED_PUNCTUATION.sub("", name.lower())
    text = _NON_WORD.sub(" ", text)
    tokens = _WHITESPACE.sub(" ", text).strip().split(" ")
    tokens = [token for token in tokens if token]

    if len(tokens) > 1 and tokens[0] == _LEADING_ARTICLE:
        tokens = tokens[1:]
    stripped = list(tokens)
    while stripped and stripped[-1] in CORPORATE_SUFFIXES:
        stripped.pop()
    return " ".join(stripped or tokens)


def _encode_word(word: str) -> str:
    s = _NON_LETTER.sub("", word.upper())
    n = len(s)
    code: List[str] = []
    i = 0
    while i < n:
        c = s[i]
        prev = s[i - 1] if i > 0 else ""
        nxt = s[i + 1] if i + 1 < n else ""
        after = s[i + 2] if i + 2 < n else ""
        step = 1

        if c in _VOWELS:
            if i == 0:
                code.append(c)
        elif c == "B":
            # Silent in a trailing "MB" (dumb, plumb)
            if not (i == n - 1 and prev == "M"):
                code.append("B")
        elif c == "C":
            if nxt == "H":
                code.append("X")
                step = 2
            elif nxt in _SOFTENERS:
                code.append("S")
            else:
                code.append("K")
        elif c == "D":
            if nxt == "G" and after in _SOFTENERS:
                code.append("J")
                step = 3
            else:
                code.append("T")
        elif c == "G":
            if nxt == "H" and after:
                if i == 0:
                    code.append("K")
                else:
                    step = 2
            elif nxt == "N" and i == n - 2:
                pass
            elif nxt in _SOFTENERS:
                code.append("J")
            else:
                code.append("K")
        elif c == "H":
            if i == 0 or prev in _VOWELS:
                code.append("H")
        elif c == "K":
            if prev != "C":
                code.append("K")
        elif c == "P":
            if nxt == "H":
                code.append("F")
                step = 2
            else:
                code.append("P")
        elif c == "Q":
            code.append("K")
        elif c == "S":
            if nxt == "H":
                code.append("X")
                step = 2
            elif nxt == "I" and after in ("O", "A"):
                code.append("X")
            else:
                code.append("S")
        elif c == "T":
            if nxt == "I" and after in ("O", "A"):
                code.append("X")
            elif nxt == "H":
                code.append("0")
                step = 2
            elif not (nxt == "C" and after == "H"):
                code.append("T")
        elif c == "V":
            code.append("F")
        elif c in ("W", "Y"):
            if i == 0 or prev in _VOWELS:
                code.append(c)
        elif c == "X":
            code.append("S" if i == 0 else "KS")
        elif c == "Z":
            code.append("S")
        else:
            code.append(c)
        i += step
    return "".join(code)


def metaphone(text: Optional[str]) -> str:
    """Return a simplified Metaphone code for ``text``.

    Each word is encoded separately and the codes are concatenated, so initial
    vowels are kept for every word. Non-letters are ignored.
    """
    if not text:
        return ""
    return "".join(_encode_word(word) for word in text.split())


def levenshtein_ratio(a: Optional[str], b: Optional[str]) -> float:
    """``1 - levenshtein(a, b) / max(len(a), len(b))``; 0.0 when either side is empty."""
    if not a or not b:
        return 0.0
    return _clamp(Levenshtein.normalized_similarity(a, b))


def jaro_winkler(a: Optional[str], b: Optional[str], prefix_weight: float = 0.1) -> float:
    """Prefix-weighted Jaro similarity; 0.0 when either side is empty."""
    if not a or not b:
        return 0.0
    first, second = _ordered(a, b)
    return _clamp(JaroWinkler.normalized_similarity(first, second, prefix_weight=prefix_weight))


def phonetic_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Edit-distance ratio between the Metaphone codes of ``a`` and ``b``."""
    if a is None or b is None:
        return 0.0
    code_a = metaphone(a)
    code_b = metaphone(b)
    if not code_a or not code_b:
        return 0.0
    if code_a == code_b:
        return 1.0
    return levenshtein_ratio(*_ordered(code_a, code_b))


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Similarity between two party names.

    Args:
        a: First name (raw, as received)
        b: Second name (raw, as received)

    Returns:
        The best of the phonetic, Jaro-Winkler and edit-distance scores over the
        normalized names, in [0, 1]. Identical non-empty input scores 1.0,
        whitespace included; otherwise ``None``, empty or blank input scores 0.0.
    """
    if a is None or b is None:
        return 0.0
    if a == b:
        return 1.0 if a else 0.0
    if not a.strip() or not b.strip():
        return 0.0

    first, second = _ordered(a, b)
    norm_first = normalize_legal_name(first)
    norm_second = normalize_legal_name(second)
    if not norm_first or not norm_second:
        return 0.0
    if norm_first == norm_second:
        return 1.0

    return _clamp(max(
        phonetic_similarity(norm_first, norm_second),
        jaro_winkler(norm_first, norm_second),
        levenshtein_ratio(norm_first, norm_second),
    ))

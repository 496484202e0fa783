from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Pattern


def fold(text: str) -> str:
    """Lowercase and strip diacritics so patterns can be written accent-free."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def compile_terms(terms: Iterable[str]) -> Pattern[str]:
    """Compile accent-free alternatives into one word-bounded pattern."""
    return re.compile(r"\b(?:" + "|".join(terms) + r")\b", re.IGNORECASE)


def find_all(pattern: Pattern[str], original: str, folded: str) -> List[str]:
    """Matched substrings, taken from ``original`` when folding kept offsets."""
    aligned = len(original) == len(folded)
    found: List[str] = []
    for match in pattern.finditer(folded):
        start, end = match.span()
        snippet = original[start:end] if aligned else match.group(0)
        if snippet not in found:
            found.append(snippet)
    return found


def word_count(text: str) -> int:
    return len(text.split())


__all__ = ["fold", "compile_terms", "find_all", "word_count"]

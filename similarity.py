"""Edit-distance based title similarity used for record linkage."""

from __future__ import annotations


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance over code points (insert/delete/substitute cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def normalized_distance(a: str, b: str) -> float:
    """Edit distance divided by the longer string's length (0.0 for two empty strings)."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return levenshtein_distance(a, b) / longest


def similarity(a: str, b: str) -> float:
    """Symmetric score in (0, 1]; identical strings score exactly 1.0."""
    return 1.0 / (1.0 + normalized_distance(a, b))

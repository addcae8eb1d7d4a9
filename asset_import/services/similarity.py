from __future__ import annotations

"""Edit distance and normalized name similarity.

Pure functions, no I/O. Callers normalize (trim / lower-case) before comparing.
"""

__all__ = [
    "distance",
    "similarity",
]


def distance(a: str, b: str) -> int:
    """Levenshtein distance (substitution, insertion, deletion each cost 1)."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    # 2 行ローリングで O(min(len)) メモリ
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """(maxLen - distance) / maxLen in [0, 1]; two empty strings score 0.0."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 0.0
    return (max_len - distance(a, b)) / max_len

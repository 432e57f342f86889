"""Typo-tolerant term matching for keyword queries.

Defaults scale with term length:
- 1-3 chars: exact only (short API names collide too easily)
- 4-6 chars: at most 1 edit
- 7+ chars: at most 2 edits
"""

from __future__ import annotations

from collections.abc import Iterable


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Return the edit distance between two strings.

    When ``max_distance`` is given the computation stops as soon as the
    distance is guaranteed to exceed it and returns ``max_distance + 1``.

    Examples:
        >>> levenshtein_distance("linspace", "linspcae")
        2
        >>> levenshtein_distance("", "fft")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    if len(s1) > len(s2):
        s1, s2 = s2, s1

    if max_distance is not None and len(s2) - len(s1) > max_distance:
        return max_distance + 1

    previous = list(range(len(s1) + 1))
    for j, char2 in enumerate(s2, start=1):
        current = [j]
        for i, char1 in enumerate(s1, start=1):
            cost = 0 if char1 == char2 else 1
            current.append(min(previous[i] + 1, current[i - 1] + 1, previous[i - 1] + cost))
        if max_distance is not None and min(current) > max_distance:
            return max_distance + 1
        previous = current

    return previous[-1]


def get_max_edit_distance(term_length: int) -> int:
    """Return the edit budget for a term of the given length."""
    if term_length <= 3:
        return 0
    if term_length <= 6:
        return 1
    return 2


def closest_term(query_term: str, vocabulary: Iterable[str], max_distance: int | None = None) -> tuple[str, int] | None:
    """Return the closest vocabulary term within the edit budget.

    Ties on distance resolve to the lexically smallest term so results stay
    deterministic for a given vocabulary.
    """
    if not query_term:
        return None

    budget = get_max_edit_distance(len(query_term)) if max_distance is None else max_distance
    if budget <= 0:
        return None

    best: tuple[int, str] | None = None
    for term in vocabulary:
        if term == query_term or abs(len(term) - len(query_term)) > budget:
            continue
        distance = levenshtein_distance(query_term, term, budget)
        if distance > budget:
            continue
        candidate = (distance, term)
        if best is None or candidate < best:
            best = candidate

    if best is None:
        return None
    return best[1], best[0]

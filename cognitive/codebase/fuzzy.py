# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Fuzzy subsequence matching with a best-alignment score.

The pattern must appear in the text as a case-insensitive subsequence. Among
all alignments the one with the highest total bonus is chosen:

- every matched character: 10
- first pattern character matched at text position 0: +15
- match at the start of the text or right after a separator: +20
- match on a camelCase hump (lowercase followed by uppercase): +15
- matched character is uppercase: +5
"""

from dataclasses import dataclass, field
from typing import List, Optional

SEPARATORS = frozenset(" ._-/:\\")

_UNREACHABLE = -(10**9)


@dataclass
class FuzzyMatch:
    score: int
    matched_indices: List[int] = field(default_factory=list)


def _match_bonus(pos: int, text: str, is_first: bool) -> int:
    bonus = 10
    if is_first and pos == 0:
        bonus += 15
    if pos == 0:
        bonus += 20
    else:
        prev = text[pos - 1]
        if prev in SEPARATORS:
            bonus += 20
        elif prev.islower() and text[pos].isupper():
            bonus += 15
    if text[pos].isupper():
        bonus += 5
    return bonus


def fuzzy_match(pattern: str, text: str) -> Optional[FuzzyMatch]:
    """Score ``pattern`` against ``text``; ``None`` when it is not a subsequence."""
    if not pattern:
        return FuzzyMatch(score=0)

    p = pattern.lower()
    t = text.lower()
    n, m = len(p), len(t)
    if n > m or len(t) != len(text):
        # Lowercasing changed the length (e.g. "İ"); fall back to a plain scan
        return _fallback_match(p, t) if n <= m else None

    # Quick subsequence check before the quadratic pass
    pi = 0
    for ch in t:
        if pi < n and ch == p[pi]:
            pi += 1
    if pi != n:
        return None

    # dp[i][j]: best score with the first i pattern chars placed in text[:j]
    dp = [[_UNREACHABLE] * (m + 1) for _ in range(n + 1)]
    took = [[False] * (m + 1) for _ in range(n + 1)]
    for j in range(m + 1):
        dp[0][j] = 0

    for i in range(1, n + 1):
        for j in range(i, m + 1):
            best = dp[i][j - 1]
            matched = False
            if p[i - 1] == t[j - 1] and dp[i - 1][j - 1] > _UNREACHABLE:
                score = dp[i - 1][j - 1] + _match_bonus(j - 1, text, i == 1)
                if score > best:
                    best = score
                    matched = True
            dp[i][j] = best
            took[i][j] = matched

    if dp[n][m] <= _UNREACHABLE:
        return None

    indices: List[int] = []
    i, j = n, m
    while i > 0:
        if took[i][j]:
            indices.append(j - 1)
            i -= 1
        j -= 1
    indices.reverse()
    return FuzzyMatch(score=dp[n][m], matched_indices=indices)


def _fallback_match(pattern: str, text: str) -> Optional[FuzzyMatch]:
    indices: List[int] = []
    pi = 0
    for j, ch in enumerate(text):
        if pi < len(pattern) and ch == pattern[pi]:
            indices.append(j)
            pi += 1
    if pi != len(pattern):
        return None
    return FuzzyMatch(score=10 * len(pattern), matched_indices=indices)

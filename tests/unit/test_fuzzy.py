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

"""Tests for codebase/fuzzy module."""

from cognitive.codebase.fuzzy import fuzzy_match


class TestFuzzyMatch:
    """Tests for fuzzy_match."""

    def test_not_a_subsequence(self):
        assert fuzzy_match("xyz", "save") is None
        assert fuzzy_match("evas", "save") is None

    def test_pattern_longer_than_text(self):
        assert fuzzy_match("saveAll", "save") is None

    def test_case_insensitive(self):
        assert fuzzy_match("SAVE", "save") is not None
        assert fuzzy_match("save", "SaveFile") is not None

    def test_exact_score(self):
        # 10 + 15 (first at start) + 20 (start of text), then 10 per character
        assert fuzzy_match("save", "save").score == 75

    def test_camel_hump_bonus(self):
        assert fuzzy_match("gf", "getFile").score > fuzzy_match("gf", "gulf").score

    def test_separator_bonus(self):
        assert fuzzy_match("f", "get_file").score > fuzzy_match("f", "getafile").score

    def test_best_alignment_chosen(self):
        match = fuzzy_match("ab", "xa_ab")
        assert match.matched_indices == [3, 4]
        assert match.score == 40

    def test_empty_pattern(self):
        assert fuzzy_match("", "anything").score == 0

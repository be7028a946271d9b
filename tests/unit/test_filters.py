"""
Unit tests for query filter helpers.
"""

from mediavault.db.filters import contains_pattern


class TestContainsPattern:
    def test_plain_text(self):
        assert contains_pattern("bob") == "%bob%"

    def test_wildcards_escaped(self):
        assert contains_pattern("50%_off") == "%50\\%\\_off%"

    def test_escape_character_escaped(self):
        assert contains_pattern("a\\b") == "%a\\\\b%"

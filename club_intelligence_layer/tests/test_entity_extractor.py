"""
Test suite for the entity extractor.
Covers table matching, proper-noun detection, time frames and the fuzzy stat fallback.
"""

import pytest

from club_intelligence_layer.config.pseudonyms import load_pseudonym_tables
from club_intelligence_layer.src.entity_extractor import EntityExtractor, ExtractedSpan


class TestEntityExtractor:
    """Test class for EntityExtractor."""

    def setup_method(self):
        """Set up test fixtures for each test method."""
        self.extractor = EntityExtractor()

    def test_player_and_stat(self):
        """Test a plain player stat question."""
        result = self.extractor.extract("How many goals has Luke Bangs scored?")

        players = result.entities_of("player")
        assert [p.value for p in players] == ["Luke Bangs"]
        assert players[0].position == 19
        assert result.distinct_stat_types() == ["Goals"]
        assert result.time_frames == ()

    def test_extraction_is_repeatable(self):
        """Test extracting the same question twice gives equal results."""
        question = "How many goals did the 2nd team score in 2017/18?"
        assert self.extractor.extract(question) == self.extractor.extract(question)

    def test_longest_variant_wins(self):
        """Test 'open play goals' is not also reported as 'goals'."""
        result = self.extractor.extract("How many open play goals has Luke Bangs scored?")

        assert result.distinct_stat_types() == ["Open Play Goals"]
        assert result.stat_types[0].original_text == "open play goals"

    def test_team_and_season(self):
        """Test team pseudonyms and season time frames."""
        result = self.extractor.extract("How many goals did the 2nd team score in 2017/18?")

        assert [t.value for t in result.entities_of("team")] == ["2s"]
        assert [(t.value, t.type) for t in result.time_frames] == [("2017/18", "season")]
        assert result.entities_of("player") == []

    def test_compact_season_is_normalized(self):
        """Test hyphenated seasons come back with a slash."""
        result = self.extractor.extract("How many goals has Luke Bangs scored in 2019-20?")

        assert [(t.value, t.type) for t in result.time_frames] == [("2019/20", "season")]

    def test_opposition_after_prefix(self):
        """Test a proper noun after 'against' is an opposition."""
        result = self.extractor.extract("What is our record against Old Wimbledonians?")

        assert [o.value for o in result.entities_of("opposition")] == ["Old Wimbledonians"]
        assert result.entities_of("player") == []

    def test_opposition_after_prefix_and_article(self):
        """Test 'versus the' still marks an opposition."""
        result = self.extractor.extract("How did we do versus the Trinity side?")

        assert [o.value for o in result.entities_of("opposition")] == ["Trinity"]

    def test_first_person(self):
        """Test first-person references become the 'I' player."""
        result = self.extractor.extract("How many assists have I got?")

        players = result.entities_of("player")
        assert len(players) == 1
        assert players[0].value == "I"
        assert players[0].original_text == "I"

    def test_possessive_is_stripped(self):
        """Test 'Bangs's' resolves to the bare name."""
        result = self.extractor.extract("What is Luke Bangs's goal tally?")

        assert [p.value for p in result.entities_of("player")] == ["Luke Bangs"]

    def test_separate_names_are_not_merged(self):
        """Test names separated by punctuation stay separate."""
        result = self.extractor.extract("How many goals have Luke Bangs, Oli Goddard scored?")

        assert [p.value for p in result.entities_of("player")] == ["Luke Bangs", "Oli Goddard"]

    def test_location_and_negation(self):
        """Test locations and negative clauses are extracted."""
        result = self.extractor.extract("How many goals has Luke Bangs scored away from home?")
        assert [loc.value for loc in result.locations] == ["away"]

        result = self.extractor.extract("How many goals has Luke Bangs scored not for the 1s?")
        assert [n.value for n in result.negative_clauses] == ["not"]
        assert [t.value for t in result.entities_of("team")] == ["1s"]

    def test_home_ground(self):
        """Test the home ground is typed as a ground."""
        result = self.extractor.extract("How many goals has Luke Bangs scored at Pixham?")

        assert [(loc.value, loc.type) for loc in result.locations] == [("Pixham", "ground")]
        assert [p.value for p in result.entities_of("player")] == ["Luke Bangs"]

    def test_structured_time_frames(self):
        """Test since, before, between and this-season phrases."""
        since = self.extractor.extract("How many goals has Luke Bangs scored since 2019?")
        assert [(t.value, t.type) for t in since.time_frames] == [("2019", "since")]

        before = self.extractor.extract("How many goals has Luke Bangs scored before 2020?")
        assert [(t.value, t.type) for t in before.time_frames] == [("2020", "before")]

        between = self.extractor.extract("How many goals has Luke Bangs scored between 2018 and 2020?")
        assert [(t.value, t.type) for t in between.time_frames] == [("2018 to 2020", "range")]

        current = self.extractor.extract("How many goals has Luke Bangs scored this season?")
        assert [t.type for t in current.time_frames] == ["this_season"]

    def test_plain_season_word_is_not_a_season_filter(self):
        """Test the word 'season' alone does not become a season value."""
        result = self.extractor.extract("What was Luke Bangs's most prolific season?")

        assert "season" not in [t.type for t in result.time_frames]
        assert result.distinct_stat_types() == ["Most Prolific Season"]

    def test_fuzzy_stat_fallback(self):
        """Test a misspelt stat is still recognised."""
        result = self.extractor.extract("How many goasl has Luke Bangs scored?")

        assert "Goals" in result.distinct_stat_types()
        assert [p.value for p in result.entities_of("player")] == ["Luke Bangs"]

    def test_empty_question(self):
        """Test empty questions are rejected."""
        with pytest.raises(ValueError, match="Question cannot be empty"):
            self.extractor.extract("")
        with pytest.raises(ValueError):
            self.extractor.extract("   ")

    def test_curly_apostrophe(self):
        """Test typographic apostrophes are handled like plain ones."""
        result = self.extractor.extract("What is Luke Bangs’s goal tally?")

        assert [p.value for p in result.entities_of("player")] == ["Luke Bangs"]

    def test_custom_tables(self, tmp_path):
        """Test a JSON file replaces a pseudonym table."""
        path = tmp_path / "pseudonyms.json"
        path.write_text('{"stat_types": {"Goals": ["worldies"]}}')

        extractor = EntityExtractor(load_pseudonym_tables(path))
        result = extractor.extract("How many worldies has Luke Bangs scored?")

        assert result.distinct_stat_types() == ["Goals"]


class TestExtractedSpan:
    """Test class for ExtractedSpan helpers."""

    def test_overlap(self):
        """Test span overlap checks."""
        span = ExtractedSpan("Goals", "stat_type", "goals", 9)

        assert span.end == 14
        assert span.overlaps(10, 12)
        assert span.overlaps(0, 10)
        assert not span.overlaps(14, 20)
        assert not span.overlaps(0, 9)

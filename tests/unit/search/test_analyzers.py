"""Unit tests for analyzer pipelines and filters."""

import pytest

from content_index.search import analyzers
from content_index.search.analyzers import (
    AnalyzerPipeline,
    EnglishAnalyzer,
    KeywordAnalyzer,
    LowercaseFilter,
    RegexTokenizer,
    SimpleAnalyzer,
    StopFilter,
    Token,
    analyze_terms,
    get_analyzer,
    light_stem,
)


@pytest.mark.unit
class TestToken:
    def test_copy_with_leaves_original_untouched(self):
        token = Token(text="Batman", position=2, start_char=10, end_char=16)

        clone = token.copy_with(text="batman")

        assert clone.text == "batman"
        assert clone.position == 2
        assert (clone.start_char, clone.end_char) == (10, 16)
        assert token.text == "Batman"


@pytest.mark.unit
class TestRegexTokenizer:
    def test_splits_on_non_alphanumeric_boundaries(self):
        tokens = list(RegexTokenizer()("cat-woman, riddler_penguin!42"))

        assert [t.text for t in tokens] == ["cat", "woman", "riddler", "penguin", "42"]
        assert tokens[0].start_char == 0
        assert tokens[1].start_char == 4

    def test_handles_unicode_letters(self):
        assert [t.text for t in RegexTokenizer()("Café naïve")] == ["Café", "naïve"]

    def test_empty_text_yields_nothing(self):
        assert list(RegexTokenizer()("  --  ")) == []


@pytest.mark.unit
class TestSimpleAnalyzer:
    def test_lowercases_and_keeps_duplicates(self):
        assert analyze_terms(SimpleAnalyzer(), "Batman BATMAN robin") == ["batman", "batman", "robin"]

    def test_positions_are_sequential(self):
        tokens = SimpleAnalyzer()("one -- two ... three")
        assert [t.position for t in tokens] == [0, 1, 2]

    def test_keeps_stopwords(self):
        assert analyze_terms(SimpleAnalyzer(), "the joker") == ["the", "joker"]


@pytest.mark.unit
class TestEnglishAnalyzer:
    def test_removes_stopwords_and_stems(self):
        assert analyze_terms(EnglishAnalyzer(), "The jokers are laughing") == ["joker", "laugh"]

    def test_custom_stopwords(self):
        assert analyze_terms(EnglishAnalyzer(stopwords=["joker"]), "joker penguin") == ["penguin"]

    def test_light_stem_keeps_short_words(self):
        assert light_stem("is") == "is"
        assert light_stem("bats") == "bat"
        assert light_stem("sing") == "sing"


@pytest.mark.unit
class TestKeywordAnalyzer:
    def test_single_lowercased_token(self):
        tokens = KeywordAnalyzer()("  Gotham City ")
        assert len(tokens) == 1
        assert tokens[0].text == "gotham city"
        assert tokens[0].start_char == 2

    def test_blank_value_has_no_tokens(self):
        assert KeywordAnalyzer()("   ") == []


@pytest.mark.unit
class TestPipeline:
    def test_filters_run_in_order(self):
        pipeline = AnalyzerPipeline(RegexTokenizer(), [StopFilter(["robin"]), LowercaseFilter()])

        # stop filter runs before lowercasing, so "Robin" survives
        assert analyze_terms(pipeline, "Robin robin") == ["robin"]


@pytest.mark.unit
class TestRegistry:
    def test_default_is_simple(self):
        assert isinstance(get_analyzer(None), SimpleAnalyzer)

    def test_lookup_is_case_insensitive(self):
        assert isinstance(get_analyzer("English"), EnglishAnalyzer)

    def test_unknown_analyzer_lists_available(self):
        with pytest.raises(ValueError, match="Available"):
            get_analyzer("klingon")

    def test_available_analyzers_sorted(self):
        assert analyzers.available_analyzers() == ["english", "keyword", "simple"]

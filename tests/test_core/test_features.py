"""Tests for token feature extraction."""

import pytest

from probabilistic_syntax.core.features import (
    FeatureOptions,
    END_MARKER,
    START_MARKER,
    extract,
    extract_sequence,
    is_all_caps,
    is_capitalized,
    short_word_shape,
    word_shape
)
from probabilistic_syntax.data import Token
from probabilistic_syntax.errors import ConfigurationError


class TestExtract:
    """Feature families for single tokens."""

    def test_lexical_and_orthographic_features(self):
        feats = extract(Token(text="John", lemma="John"))

        assert "word=John" in feats
        assert "word_lower=john" in feats
        assert "lemma=John" in feats
        assert "capitalized=true" in feats
        assert "all_caps=false" in feats
        assert "title_case=true" in feats
        assert "word_shape=Xxxx" in feats
        assert "short_word_shape=Xx" in feats
        assert "has_digit=false" in feats
        assert "has_hyphen=false" in feats
        assert "has_punctuation=false" in feats

    def test_plain_string_is_promoted(self):
        assert extract("cat") == extract(Token(text="cat"))

    def test_pos_feature_is_uppercased(self):
        feats = extract(Token(text="runs", pos_tag="verb"))
        assert "pos=VERB" in feats

    def test_affixes_respect_max_length(self):
        feats = extract("walking", options=FeatureOptions(max_affix_length=2))

        assert {"prefix-1=w", "prefix-2=wa", "suffix-1=g", "suffix-2=ng"} <= feats
        assert not any(f.startswith("prefix-3") for f in feats)

    def test_affixes_limited_by_word_length(self):
        feats = extract("ox")
        assert "prefix-2=ox" in feats
        assert not any(f.startswith("prefix-3") for f in feats)

    def test_zero_affix_length_disables_affixes(self):
        feats = extract("walking", options=FeatureOptions(max_affix_length=0))
        assert not any(f.startswith(("prefix-", "suffix-")) for f in feats)

    @pytest.mark.parametrize("text, expected", [
        ("123", "pattern=all_digits"),
        ("1999", "pattern=year"),
        ("3.14", "pattern=decimal"),
        ("J.", "pattern=initial"),
        ("NASA", "pattern=acronym"),
    ])
    def test_patterns(self, text, expected):
        assert expected in extract(text)

    def test_length_buckets(self):
        assert "length=1" in extract("a")
        assert "short_word=true" in extract("the")
        assert "long_word=true" in extract("international")

    def test_gazetteers_can_be_disabled(self):
        assert "in_gazetteer=person" in extract("Mary")
        assert "in_gazetteer=place" in extract("london")
        assert "in_gazetteer=org" in extract("Google")

        feats = extract("Mary", options=FeatureOptions(use_gazetteers=False))
        assert not any(f.startswith("in_gazetteer") for f in feats)

    def test_context_defaults_to_boundary_markers(self):
        feats = extract("cat")
        assert f"prev_word={START_MARKER}" in feats
        assert f"next_word={END_MARKER}" in feats

    def test_context_features(self):
        context = {'prev_word': 'the', 'next_word': 'sleeps', 'prev_pos': 'det',
                   'prev_label': 'none', 'position': 1, 'sequence_length': 3}
        feats = extract("cat", context)

        assert "prev_word=the" in feats
        assert "next_word=sleeps" in feats
        assert "prev_pos=DET" in feats
        assert "prev_label=none" in feats
        assert "is_first=true" not in feats
        assert "is_last=true" not in feats

    def test_token_without_text_skips_text_features(self):
        feats = extract(Token(text=None, lemma="be", pos_tag="aux"))

        assert "lemma=be" in feats
        assert "pos=AUX" in feats
        assert not any(f.startswith(("word", "prefix-", "capitalized")) for f in feats)

    def test_extract_is_deterministic(self):
        token = Token(text="Paris", pos_tag="propn")
        assert extract(token) == extract(token)
        assert isinstance(extract(token), frozenset)


class TestExtractSequence:

    def test_one_feature_set_per_token(self):
        sequences = extract_sequence(["John", "lives", "here"])
        assert len(sequences) == 3

    def test_boundaries_and_neighbours(self):
        first, middle, last = extract_sequence(["John", "lives", "here"])

        assert "is_first=true" in first
        assert "next_word=lives" in first
        assert "prev_word=John" in middle and "next_word=here" in middle
        assert "is_last=true" in last
        assert f"next_word={END_MARKER}" in last

    def test_single_token_is_first_and_last(self):
        (feats,) = extract_sequence(["Hi"])
        assert {"is_first=true", "is_last=true"} <= feats

    def test_empty_sequence(self):
        assert extract_sequence([]) == []


class TestOptionsAndShapes:

    def test_negative_affix_length_rejected(self):
        with pytest.raises(ConfigurationError):
            FeatureOptions(max_affix_length=-1)

    def test_word_shapes(self):
        assert word_shape("IBM-3") == "XXX-d"
        assert short_word_shape("Xxxx") == "Xx"
        assert short_word_shape("2024") == "d"

    def test_capitalization_helpers(self):
        assert is_capitalized("Paris")
        assert not is_capitalized("paris")
        assert is_all_caps("NASA")
        assert not is_all_caps("123")

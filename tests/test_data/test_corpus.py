"""Tests for the CoNLL-U and bracketed-tree corpus readers."""

import pytest

from probabilistic_syntax.data import (
    Token,
    parse_bracketed,
    parse_conllu,
    read_conllu,
    read_treebank,
    tree_tokens,
    tree_words
)
from probabilistic_syntax.errors import ConfigurationError, TrainingDataError


class TestConllu:

    def test_pos_sentences(self, sample_conllu):
        sentences = parse_conllu(sample_conllu, task="pos")

        assert len(sentences) == 2
        tokens, labels = sentences[1]
        assert [t.text for t in tokens] == ["do", "n't", "stop"]
        assert labels == ["aux", "part", "verb"]

    def test_token_annotations(self, sample_conllu):
        tokens, _labels = parse_conllu(sample_conllu)[0]
        assert tokens[0] == Token(text="John", lemma="John", pos_tag="propn")
        assert tokens[1].lemma == "live"

    def test_ner_labels(self, sample_conllu):
        _tokens, labels = parse_conllu(sample_conllu, task="ner")[0]
        assert labels == ["person", "none", "none", "place"]

    def test_language_stamped(self, sample_conllu):
        tokens, _labels = parse_conllu(sample_conllu, language="de")[0]
        assert all(t.language == "de" for t in tokens)

    def test_short_lines_skipped(self):
        text = "1\tcat\tcat\tNOUN\n2\tsleeps\tsleep\tVERB\t_\t_\t0\troot\t_\t_\n"
        (tokens, labels), = parse_conllu(text)
        assert [t.text for t in tokens] == ["sleeps"]
        assert labels == ["verb"]

    def test_empty_document(self):
        assert parse_conllu("# only a comment\n\n") == []

    def test_unknown_task(self, sample_conllu):
        with pytest.raises(ConfigurationError):
            parse_conllu(sample_conllu, task="chunking")

    def test_read_from_file(self, sample_conllu, tmp_path):
        path = tmp_path / "sample.conllu"
        path.write_text(sample_conllu, encoding="utf-8")
        assert len(read_conllu(path, task="ner")) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_conllu(tmp_path / "missing.conllu")


class TestBracketed:

    def test_nested_tree(self):
        tree = parse_bracketed("(S (NP (DET the) (NOUN cat)) (VP sleeps))")
        assert tree == ("s", [("np", [("det", "the"), ("noun", "cat")]), ("vp", "sleeps")])

    def test_words_keep_case(self):
        assert parse_bracketed("(NP London)") == ("np", "London")

    @pytest.mark.parametrize("text", ["", "(S (NP cat)", "(S cat))", "( (NP cat))", "cat"])
    def test_malformed(self, text):
        with pytest.raises(TrainingDataError):
            parse_bracketed(text)

    def test_tree_words_and_tokens(self):
        tree = parse_bracketed("(S (NP (DET the) (NOUN cat)) (VP sleeps))")
        assert tree_words(tree) == ["the", "cat", "sleeps"]
        assert [t.pos_tag for t in tree_tokens(tree)] == ["det", "noun", "vp"]

    def test_read_treebank(self, tmp_path):
        path = tmp_path / "trees.txt"
        path.write_text(
            "# toy treebank\n"
            "(S (NP cat) (VP sleeps))\n"
            "\n"
            "(S (NP dogs) (VP run))\n"
            "(S (NP birds) (VP sing))\n",
            encoding="utf-8"
        )

        pairs = read_treebank(path)
        assert len(pairs) == 3
        tokens, tree = pairs[0]
        assert [t.text for t in tokens] == ["cat", "sleeps"]
        assert tree == ("s", [("np", "cat"), ("vp", "sleeps")])

        assert len(read_treebank(path, limit=2)) == 2

    def test_read_treebank_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_treebank(tmp_path / "missing.txt")

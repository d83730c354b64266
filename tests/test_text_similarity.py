# tests/test_text_similarity.py

"""
Text Similarity Tests - overlap coefficient, deduplication, evidence validation
"""

from signal_engine.models.signals import Objection
from signal_engine.scoring.text_similarity import (
    deduplicate,
    normalize_content_words,
    validate_evidence,
    word_overlap_ratio,
)


class TestContentWords:

    def test_drops_short_words_and_stopwords(self):
        words = normalize_content_words("I am really worried about the price of it")
        assert words == frozenset({"worried", "price"})

    def test_empty(self):
        assert normalize_content_words("") == frozenset()
        assert normalize_content_words(None) == frozenset()


class TestOverlap:

    def test_identical(self):
        assert word_overlap_ratio("worried about price", "price worried") == 1.0

    def test_subset_counts_as_full_overlap(self):
        assert word_overlap_ratio("price too high", "the price is too high for my budget") == 1.0

    def test_disjoint(self):
        assert word_overlap_ratio("mortgage payment", "wife approval") == 0.0

    def test_no_content_words(self):
        assert word_overlap_ratio("the and", "price") == 0.0


class TestDeduplicate:

    def test_keeps_higher_score(self):
        items = [
            Objection(objection_text="The price is too high for me", probability=0.4),
            Objection(objection_text="Price too high", probability=0.9),
            Objection(objection_text="Need to ask my wife", probability=0.6),
        ]
        kept = deduplicate(items, key=lambda o: o.objection_text, score=lambda o: o.probability)
        assert [o.probability for o in kept] == [0.9, 0.6]

    def test_below_threshold_kept(self):
        items = [
            Objection(objection_text="worried about price and timing", probability=0.5),
            Objection(objection_text="worried about contractor trust", probability=0.5),
        ]
        kept = deduplicate(items, key=lambda o: o.objection_text, score=lambda o: o.probability)
        assert len(kept) == 2

    def test_ties_keep_first(self):
        items = [
            Objection(objection_text="price too high", probability=0.5, fear="first"),
            Objection(objection_text="too high price", probability=0.5, fear="second"),
        ]
        kept = deduplicate(items, key=lambda o: o.objection_text, score=lambda o: o.probability)
        assert [o.fear for o in kept] == ["first"]


class TestValidateEvidence:

    SOURCE = "Honestly we are three months behind on the mortgage and the bank keeps calling."

    def test_exact_substring(self):
        assert validate_evidence("three months behind on the mortgage", self.SOURCE)

    def test_word_ratio(self):
        assert validate_evidence("behind three months on mortgage", self.SOURCE)

    def test_fuzzy_match(self):
        assert validate_evidence("we are three month behind on the mortgage", self.SOURCE)

    def test_invented_quote(self):
        assert not validate_evidence("I would love to sell my vacation cabin", self.SOURCE)

    def test_empty_inputs(self):
        assert not validate_evidence("", self.SOURCE)
        assert not validate_evidence("quote", "")

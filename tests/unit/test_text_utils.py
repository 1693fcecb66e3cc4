from misinfo_guard.text_utils import (
    content_terms,
    is_negated,
    split_sentences,
    stem,
    truncate_chars,
    truncate_words,
)


def test_stem_collapses_plurals_and_inflections() -> None:
    assert stem("antibiotics") == "antibiotic"
    assert stem("viruses") == "virus"
    assert stem("babies") == "baby"
    assert stem("cure") == stem("cured") == stem("cures") == "cur"
    assert stem("flu") == "flu"


def test_content_terms_drop_stopwords_and_negations() -> None:
    assert content_terms("The vaccines do not cause autism") == ["vaccin", "caus", "autism"]
    assert content_terms("It doesn't help") == ["help"]


def test_is_negated_covers_refutation_cues() -> None:
    assert is_negated("Vaccines do not cause autism.")
    assert is_negated("There is no cure for a cold.")
    assert is_negated("That idea is a myth.")
    assert is_negated("It doesn’t work.")
    assert not is_negated("Vaccines are thoroughly tested.")


def test_split_sentences() -> None:
    text = "One. Two! Three?\nFour; five"
    assert split_sentences(text) == ["One.", "Two!", "Three?", "Four;", "five"]


def test_truncation_is_stable_at_word_boundaries() -> None:
    assert truncate_chars("hello world again", 12) == "hello world"
    assert truncate_chars("short", 12) == "short"
    assert truncate_words("a b c d", 2) == "a b..."


def test_stem_joins_condition_and_person_nouns() -> None:
    assert stem("diabetics") == stem("diabetic") == stem("diabetes")
    assert stem("asthmatics") == stem("asthma")

import pytest

from narrator.services.tts.text_segmenter import (
    build_chunks,
    normalize_whitespace,
    segment_text,
    split_into_sentences,
)

MANUSCRIPT = (
    "The lighthouse keeper woke before dawn.  He climbed the stairs!\n\n"
    "Was the lamp still burning? It was. The sea lay flat and grey, "
    "and far out a single boat drifted toward the rocks. He watched it."
)


def test_segment_text_packs_sentences_greedily():
    text = "Hello world. This is a test! Is it working? Yes."

    assert segment_text(text, max_chars=30) == [
        "Hello world. This is a test!",
        "Is it working? Yes.",
    ]


def test_segment_text_splits_when_neighbours_exceed_budget():
    text = "Hello world. This is a test. Another sentence here."

    assert segment_text(text, max_chars=20) == [
        "Hello world.",
        "This is a test.",
        "Another sentence here.",
    ]


def test_split_keeps_terminators_with_sentence():
    assert split_into_sentences("One. Two!  Three?\nFour") == [
        "One.",
        "Two!",
        "Three?",
        "Four",
    ]


def test_terminator_without_whitespace_is_not_a_boundary():
    assert split_into_sentences("Version 2.5 is out.") == ["Version 2.5 is out."]


def test_empty_input_yields_no_chunks():
    assert segment_text("") == []
    assert segment_text("   \n\t ") == []
    assert build_chunks("") == []


@pytest.mark.parametrize("max_chars", [0, -10])
def test_non_positive_budget_is_rejected(max_chars):
    with pytest.raises(ValueError):
        segment_text("Anything.", max_chars=max_chars)


def test_oversized_sentence_becomes_its_own_chunk():
    long_sentence = "A" * 50 + "."
    chunks = segment_text(f"Short one. {long_sentence} Tail.", max_chars=20)

    assert chunks == ["Short one.", long_sentence, "Tail."]


@pytest.mark.parametrize("max_chars", [15, 40, 80, 2000])
def test_chunks_respect_budget_unless_single_sentence(max_chars):
    sentences = split_into_sentences(MANUSCRIPT)
    for chunk in segment_text(MANUSCRIPT, max_chars):
        assert chunk
        assert len(chunk) <= max_chars or chunk in sentences


@pytest.mark.parametrize("max_chars", [15, 40, 80, 2000])
def test_segmentation_loses_no_text(max_chars):
    chunks = segment_text(MANUSCRIPT, max_chars)

    assert " ".join(chunks) == normalize_whitespace(MANUSCRIPT)


@pytest.mark.parametrize("max_chars", [15, 40, 80, 2000])
def test_segmentation_is_idempotent(max_chars):
    chunks = segment_text(MANUSCRIPT, max_chars)

    assert segment_text(" ".join(chunks), max_chars) == chunks


def test_build_chunks_assigns_stable_indices():
    chunks = build_chunks(MANUSCRIPT, max_chars=40)

    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert [c.text for c in chunks] == segment_text(MANUSCRIPT, max_chars=40)

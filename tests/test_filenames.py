from narrator.utils import build_artifact_name, slugify_filename


def test_slugify_filename_basic():
    assert slugify_filename("The Long Voyage, Part 2") == "the-long-voyage-part-2"


def test_slugify_filename_handles_empty():
    assert slugify_filename(None) == ""
    assert slugify_filename("") == ""
    assert slugify_filename("!!!") == ""


def test_slugify_filename_truncates():
    slug = slugify_filename("a" * 30 + " " + "b" * 40, max_length=31)
    assert slug == "a" * 30
    assert len(slug) <= 31


def test_build_artifact_name_for_chunk():
    assert build_artifact_name("My Book", "chunk_3", "wav") == "my-book_chunk_3.wav"


def test_build_artifact_name_for_complete_mp3():
    assert build_artifact_name("My Book", "complete", ".mp3") == "my-book_complete.mp3"


def test_build_artifact_name_falls_back_to_default():
    assert build_artifact_name(None, "complete", "wav") == "audiobook_complete.wav"
    assert build_artifact_name("???", "preview", "wav", default="Draft") == "draft_preview.wav"

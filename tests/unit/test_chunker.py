"""Unit tests for the chunker and dedup."""

from content_ingest.ingestion.chunker import chunk_text, dedupe_chunks


def test_snaps_to_sentence_end() -> None:
    """A period within the look-ahead moves the cut just past it."""
    text = "a" * 1250 + "." + "b" * 149
    assert len(text) == 1400
    chunks = chunk_text(text, chunk_size=1200, chunk_overlap=150)
    assert len(chunks[0]) == 1251
    assert chunks[0].endswith(".")


def test_hard_cut_without_nearby_boundary() -> None:
    text = "x" * 3000
    chunks = chunk_text(text, chunk_size=1200, chunk_overlap=150)
    assert len(chunks[0]) == 1200


def test_snaps_to_newline() -> None:
    text = "a" * 1210 + "\n" + "b" * 300
    assert len(chunk_text(text)[0]) == 1210


def test_consecutive_chunks_overlap() -> None:
    text = " ".join(f"word{i}" for i in range(800))
    chunks = chunk_text(text, chunk_size=500, chunk_overlap=100, boundary_lookahead=0)
    assert len(chunks) > 2
    assert chunks[0][-50:] in chunks[1]


def test_short_tail_dropped() -> None:
    text = "a" * 1195 + ". tail"
    assert chunk_text(text, chunk_size=1190, chunk_overlap=0) == ["a" * 1195 + "."]
    assert all(len(c) >= 50 for c in chunk_text("sentence. " * 400))


def test_short_text_single_chunk() -> None:
    text = "Opening hours are nine to five on weekdays and ten to four on weekends."
    assert chunk_text(text) == [text]


def test_chunking_is_deterministic() -> None:
    text = "Line of menu text with a price of 120 TL.\n" * 200
    assert chunk_text(text) == chunk_text(text)


def test_dedupe_keeps_first_occurrence() -> None:
    pieces = dedupe_chunks(["x" * 60, "y" * 60, "x" * 60])
    assert [p.text[0] for p in pieces] == ["x", "y"]
    assert [p.index for p in pieces] == [0, 1]
    assert pieces[0].text_hash != pieces[1].text_hash


def test_short_whole_text_kept() -> None:
    assert chunk_text("Menu: Kebab - 150 TRY") == ["Menu: Kebab - 150 TRY"]
    assert chunk_text("   ") == []


def test_dedupe_empty() -> None:
    assert dedupe_chunks([]) == []

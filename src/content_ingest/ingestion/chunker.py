"""Boundary-aware text chunking and content-hash dedup."""

from __future__ import annotations

from dataclasses import dataclass

from content_ingest.textutil import sha256_hex


@dataclass(frozen=True)
class ChunkPiece:
    index: int
    text: str
    text_hash: str


def chunk_text(
    text: str,
    chunk_size: int = 1200,
    chunk_overlap: int = 150,
    boundary_lookahead: int = 200,
    min_chunk_chars: int = 50,
) -> list[str]:
    """Split *text* into overlapping windows that prefer sentence / line ends.

    Parameters
    ----------
    text:
        Normalized source text.
    chunk_size:
        Target window length in characters.
    chunk_overlap:
        Characters shared between consecutive windows.
    boundary_lookahead:
        A ``.`` or newline found within this many characters past the raw
        cut point moves the cut there.
    min_chunk_chars:
        Chunks shorter than this (after stripping) are discarded, unless
        the chunk is the whole text.

    Returns
    -------
    list[str]
        Chunk texts in document order.
    """
    chunks: list[str] = []
    length = len(text)
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            period = text.find(".", end)
            newline = text.find("\n", end)
            boundary = min(
                period + 1 if period != -1 else length,
                newline if newline != -1 else length,
            )
            if boundary - end < boundary_lookahead:
                end = boundary

        piece = text[start:end].strip()
        whole = start == 0 and end >= length
        if piece and (whole or len(piece) >= min_chunk_chars):
            chunks.append(piece)

        if end >= length:
            break
        next_start = end - chunk_overlap
        start = next_start if next_start > start else end
    return chunks


def dedupe_chunks(chunks: list[str]) -> list[ChunkPiece]:
    """Drop repeated chunk texts, keeping first occurrence order."""
    seen: set[str] = set()
    unique: list[ChunkPiece] = []
    for text in chunks:
        text_hash = sha256_hex(text)
        if text_hash in seen:
            continue
        seen.add(text_hash)
        unique.append(ChunkPiece(index=len(unique), text=text, text_hash=text_hash))
    return unique

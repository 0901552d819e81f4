"""Boundary-aware text chunking for providers with small context windows.

Long documents are cut into chunks of at most `max_chunk_size` characters.
Consecutive chunks share `overlap_size` characters so an issue sitting on a
cut is still seen whole by one of the two requests. With
`preserve_boundaries` the cut is pulled back to the nearest paragraph,
sentence, clause or word boundary found in the last 200 characters, as long
as the chunk keeps at least half its maximum size.

Findings produced per chunk carry chunk-relative offsets; `adjust_offsets`
moves them into whole-text coordinates and `merge_results` drops the
duplicates the overlap produces.
"""

import re
from typing import Iterable, Mapping, Sequence, TypeVar, Union

from src.errors import ConfigurationError
from src.schemas.results import TextChunk

# Window searched backward from the naive cut
BOUNDARY_WINDOW = 200

# A boundary is accepted only if the chunk keeps this share of max_chunk_size
MIN_CHUNK_RATIO = 0.5

# Most preferred first
BOUNDARY_PATTERNS = [
    ("paragraph", re.compile(r"\n\n")),
    ("sentence", re.compile(r"[.!?]\s+")),
    ("clause", re.compile(r"[,;]\s+")),
    ("word", re.compile(r"\s+")),
]

F = TypeVar("F")


class TextChunker:
    """Splits text into overlapping chunks. Pure and deterministic."""

    def __init__(
        self,
        max_chunk_size: int = 2000,
        overlap_size: int = 200,
        preserve_boundaries: bool = True,
    ):
        if max_chunk_size <= 0:
            raise ConfigurationError(
                f"max_chunk_size must be positive, got {max_chunk_size}"
            )
        if overlap_size < 0 or overlap_size >= max_chunk_size:
            raise ConfigurationError(
                f"overlap_size must be in [0, {max_chunk_size}), got {overlap_size}"
            )
        self.max_chunk_size = max_chunk_size
        self.overlap_size = overlap_size
        self.preserve_boundaries = preserve_boundaries

    def chunk(self, text: str) -> list[TextChunk]:
        if len(text) <= self.max_chunk_size:
            return [TextChunk(id="0", text=text, start_offset=0, end_offset=len(text))]

        chunks: list[TextChunk] = []
        offset = 0
        previous_end = 0

        while offset < len(text):
            end = offset + self.max_chunk_size

            if end < len(text) and self.preserve_boundaries:
                boundary = self._find_boundary(text, offset, end)
                if boundary != -1:
                    end = boundary

            end = min(end, len(text))
            chunks.append(TextChunk(
                id=str(len(chunks)),
                text=text[offset:end],
                start_offset=offset,
                end_offset=end,
                overlap_with_previous=previous_end - offset if chunks else 0,
            ))

            if end >= len(text):
                break

            next_offset = max(end - self.overlap_size, 0)
            if next_offset <= offset:
                # Boundary pulled the cut back past the overlap; continue without one
                next_offset = end
            previous_end = end
            offset = next_offset

        return chunks

    def _find_boundary(self, text: str, start: int, preferred_end: int) -> int:
        """Return the best cut position before preferred_end, or -1."""
        search_start = max(start, preferred_end - BOUNDARY_WINDOW)
        window = text[search_start:preferred_end]

        for _name, pattern in BOUNDARY_PATTERNS:
            last = None
            for last in pattern.finditer(window):
                pass
            if last is None:
                continue
            position = search_start + last.end()
            if position - start >= self.max_chunk_size * MIN_CHUNK_RATIO:
                return position

        return -1

    @staticmethod
    def merge_results(
        results: Union[Mapping[str, Sequence[F]], Iterable[Sequence[F]]],
    ) -> list[F]:
        """Flatten per-chunk findings, keeping the first of any overlapping run.

        Findings need `offset` and `length` attributes in whole-text
        coordinates (see `adjust_offsets`).
        """
        groups = results.values() if isinstance(results, Mapping) else results
        findings = sorted(
            (finding for group in groups for finding in group),
            key=lambda f: f.offset,
        )

        merged: list[F] = []
        for finding in findings:
            if merged:
                last = merged[-1]
                if finding.offset < last.offset + last.length:
                    continue
            merged.append(finding)
        return merged

    @staticmethod
    def adjust_offsets(results: Sequence[F], chunk: TextChunk) -> list[F]:
        """Shift chunk-relative offsets to whole-text offsets (returns copies)."""
        return [
            r.model_copy(update={"offset": r.offset + chunk.start_offset})
            for r in results
        ]

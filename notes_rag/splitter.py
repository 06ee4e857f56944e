"""
Recursive character text splitting.

Divides text on a priority list of separators (paragraph, line, sentence,
word, character) so every chunk stays within a size limit. Separators are
kept attached to the text before them, so no characters are ever dropped:
with zero overlap the chunks concatenate back to the input exactly. With
overlap, each chunk after the first begins with the last ``chunk_overlap``
characters of the chunk before it.
"""

from dataclasses import dataclass

# Highest priority first; "" means hard character slicing
DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "? ", "! ", " ", "")


@dataclass(frozen=True)
class TextSplitter:
    """
    Splits text into ordered chunks of at most ``chunk_size`` characters.

    The non-overlapping part of each chunk is at most
    ``chunk_size - chunk_overlap`` characters, so that prefixing the
    overlap never pushes a chunk past ``chunk_size``.
    """
    chunk_size: int = 1000
    chunk_overlap: int = 200
    separators: tuple[str, ...] = DEFAULT_SEPARATORS

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap must be >= 0 and smaller than chunk_size "
                f"({self.chunk_overlap} vs {self.chunk_size})"
            )
        if not self.separators or self.separators[-1] != "":
            raise ValueError("separators must end with '' (character split)")

    @property
    def _budget(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def split(self, text: str) -> list[str]:
        """Split text into chunks, preserving document order."""
        if len(text) <= self.chunk_size:
            return [text]

        segments = self._split_recursive(text, self.separators)

        chunks = []
        start = 0
        for segment in segments:
            overlap_start = max(0, start - self.chunk_overlap)
            chunks.append(text[overlap_start:start + len(segment)])
            start += len(segment)
        return chunks

    def _split_recursive(self, text: str, separators: tuple[str, ...]) -> list[str]:
        """Partition text into contiguous segments of at most the budget."""
        budget = self._budget
        if len(text) <= budget:
            return [text]

        separator, rest = separators[0], separators[1:]
        if separator == "":
            return [text[i:i + budget] for i in range(0, len(text), budget)]
        if separator not in text:
            return self._split_recursive(text, rest)

        segments: list[str] = []
        current = ""
        for piece in _split_keeping_separator(text, separator):
            if len(piece) > budget:
                if current:
                    segments.append(current)
                    current = ""
                segments.extend(self._split_recursive(piece, rest))
            elif len(current) + len(piece) <= budget:
                current += piece
            else:
                segments.append(current)
                current = piece
        if current:
            segments.append(current)
        return segments


def _split_keeping_separator(text: str, separator: str) -> list[str]:
    """Split on separator, leaving it at the end of each preceding piece."""
    parts = text.split(separator)
    pieces = [part + separator for part in parts[:-1]]
    if parts[-1]:
        pieces.append(parts[-1])
    return pieces


def split_text(
    text: str,
    *,
    enabled: bool,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> list[str]:
    """
    Segment note text for ingestion.

    When splitting is disabled the text is returned unchanged as a single
    chunk. Empty text always yields a single empty chunk.
    """
    if not enabled:
        return [text]
    return TextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap).split(text)

"""
Content Chunking Service

This module splits a video's text streams into bounded, sentence-aligned
chunks ready for embedding.

Chunking Strategies:
--------------------
1. Transcript: Markup is parsed into lines with their timestamps, the plain
   text is chunked by sentences and line ends, and each chunk is given the timestamp of
   the line it most likely starts near
2. Notes: Sentence chunking of the plain text
3. Summary: One chunk per summary point (points are already short)
4. Conversation: Each question/answer exchange is chunked by sentences

Configuration from settings:
- CHUNK_MAX_CHARACTERS: 512 (default)
- CHUNK_OVERLAP_WORDS: 50 (default)
"""

import re
from typing import Any, Iterable, Mapping, Optional, Union

from bs4 import BeautifulSoup

from vidrecall.core.config import settings
from vidrecall.schemas.answer import ConversationMessage


SENTENCE_BOUNDARY = re.compile(r'(?<=[.!?])\s+')


# ========================================
# Pure Helpers
# ========================================

def split_sentences(text: str) -> list[str]:
    """
    Split text into sentences on ., ! and ? followed by whitespace.

    This is an approximation: abbreviations like "e.g. this" split too.
    """
    return [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s.strip()]


def split_words(text: str, max_length: int) -> list[str]:
    """Split text on word boundaries into pieces of at most ``max_length`` characters."""
    pieces: list[str] = []
    current = ""

    for word in text.split():
        if current and len(current) + 1 + len(word) > max_length:
            pieces.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word

    if current:
        pieces.append(current)

    return pieces


def chunk_segments(segments: Iterable[str], max_length: int = 512, overlap: int = 50) -> list[str]:
    """
    Accumulate segments (usually sentences) into chunks of at most
    ``max_length`` characters.

    When the next segment would overflow the running buffer, the buffer is
    emitted and the next one is seeded with its last ``overlap`` words. A
    single segment longer than ``max_length`` becomes its own oversized
    chunk rather than being cut.

    Args:
        segments: Ordered text segments
        max_length: Maximum characters per chunk (soft, see above)
        overlap: Words carried over from the previous chunk

    Returns:
        Ordered list of non-empty chunk strings
    """
    chunks: list[str] = []
    buffer = ""

    for segment in segments:
        segment = segment.strip()
        if not segment:
            continue

        if buffer and len(buffer) + len(segment) > max_length:
            chunks.append(buffer.strip())

            # Seed the next chunk with the tail of this one
            words = buffer.split()
            if overlap > 0 and len(words) > overlap:
                buffer = " ".join(words[-overlap:]) + " "
            else:
                buffer = ""

        buffer += segment + " "

    if buffer.strip():
        chunks.append(buffer.strip())

    return chunks


def chunk_text(text: str, max_length: int = 512, overlap: int = 50) -> list[str]:
    """Chunk plain text by sentences (see ``chunk_segments``)."""
    if not text or not text.strip():
        return []
    return chunk_segments(split_sentences(text), max_length, overlap)


def format_timestamp(seconds: float) -> str:
    """Format seconds as M:SS (minutes are not rolled into hours)."""
    seconds = max(0.0, float(seconds))
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def extract_transcript_lines(markup: str) -> tuple[list[str], dict[int, dict[str, float]]]:
    """
    Strip transcript markup, keeping a side table of line timings.

    Each transcript line is an element carrying ``data-timestamp``,
    ``data-duration`` and ``data-index`` attributes, with the spoken text in a
    ``.transcript-text`` child and a visible ``[M:SS]`` marker in a
    ``.timestamp-marker`` child:

        <p class="transcript-line" data-timestamp="12.5" data-duration="3.1" data-index="4">
          <span class="timestamp-marker" data-seconds="12.5">[0:12]</span>
          <span class="transcript-text">Welcome back.</span>
        </p>

    Args:
        markup: Transcript markup, or plain text

    Returns:
        (lines, timings) where lines are the plain line texts in order and
        timings maps the original line index to {"timestamp", "duration"}.
        Plain text yields a single line and an empty table.
    """
    if not markup or not markup.strip():
        return [], {}

    if "<" not in markup:
        return [markup.strip()], {}

    soup = BeautifulSoup(markup, "html.parser")
    elements = soup.find_all(attrs={"data-timestamp": True})

    if not elements:
        text = soup.get_text(" ", strip=True)
        return ([text] if text else []), {}

    lines: list[str] = []
    timings: dict[int, dict[str, float]] = {}

    for position, element in enumerate(elements):
        text_element = element.find(class_="transcript-text")
        if text_element is None:
            for marker in element.find_all(class_="timestamp-marker"):
                marker.decompose()
            text_element = element

        text = text_element.get_text(" ", strip=True)
        if not text:
            continue

        try:
            line_index = int(element.get("data-index", position))
        except (TypeError, ValueError):
            line_index = position

        try:
            timings[line_index] = {
                "timestamp": float(element["data-timestamp"]),
                "duration": float(element.get("data-duration") or 0),
            }
        except (TypeError, ValueError):
            # Unparseable timing: keep the text, skip the timestamp
            pass

        lines.append(text)

    return lines, timings


def nearest_line_index(estimate: float, line_indices: Iterable[int]) -> Optional[int]:
    """Return the known line index closest to ``estimate`` (lower index wins ties)."""
    candidates = list(line_indices)
    if not candidates:
        return None
    return min(candidates, key=lambda idx: (abs(idx - estimate), idx))


# ========================================
# Chunker
# ========================================

class ContentChunker:
    """
    Chunker with content-type specific strategies.

    Every method returns chunk dictionaries:
    - index: Chunk index within the stream (0-based)
    - text: Chunk text content (never empty)
    - metadata: Content-type specific metadata

    Usage:
    ------
    chunker = ContentChunker()
    chunks = chunker.chunk_transcript(video.transcript)

    for chunk in chunks:
        print(chunk["index"], chunk["metadata"].get("formatted_timestamp"))
    """

    def __init__(self, max_length: Optional[int] = None, overlap: Optional[int] = None):
        """
        Initialize the chunker with configuration.

        Args:
            max_length: Max characters per chunk (default from settings)
            overlap: Words to overlap between chunks (default from settings)
        """
        self.max_length = max_length if max_length is not None else settings.CHUNK_MAX_CHARACTERS
        self.overlap = overlap if overlap is not None else settings.CHUNK_OVERLAP_WORDS

        if self.max_length <= 0:
            raise ValueError("max_length must be positive")
        if self.overlap < 0:
            raise ValueError("overlap must not be negative")

    def chunk(self, text: str) -> list[str]:
        """Chunk plain text with this chunker's limits."""
        return chunk_text(text, self.max_length, self.overlap)

    # ========================================
    # Transcript Strategy
    # ========================================

    def _transcript_segments(self, lines: list[str]) -> list[str]:
        segments = []
        for line in lines:
            for sentence in split_sentences(line):
                if len(sentence) > self.max_length:
                    segments.extend(split_words(sentence, self.max_length))
                else:
                    segments.append(sentence)
        return segments

    def chunk_transcript(self, transcript: str) -> list[dict[str, Any]]:
        """
        Chunk a transcript and align each chunk to a source timestamp.

        Line ends are segment boundaries as well as sentence ends, so
        unpunctuated captions still chunk by size. A line longer than
        ``max_length`` is split on word boundaries.

        Alignment is heuristic: chunk ``i`` of ``n`` is assumed to start near
        original line ``i * line_count / n`` and takes the timing of the
        nearest line that has one. It is not an exact mapping.

        Metadata extracted (when the transcript carries timings):
        - timestamp: Seconds into the video
        - duration: Duration of the matched line in seconds
        - formatted_timestamp: M:SS
        """
        lines, timings = extract_transcript_lines(transcript)
        texts = chunk_segments(self._transcript_segments(lines), self.max_length, self.overlap)

        chunks = []
        for i, text in enumerate(texts):
            metadata: dict[str, Any] = {}

            if timings:
                estimate = i * (len(lines) / len(texts))
                line_index = nearest_line_index(estimate, timings.keys())
                timing = timings[line_index]
                metadata = {
                    "timestamp": timing["timestamp"],
                    "duration": timing["duration"],
                    "formatted_timestamp": format_timestamp(timing["timestamp"]),
                    "line_index": line_index,
                }

            chunks.append({"index": i, "text": text, "metadata": metadata})

        return chunks

    # ========================================
    # Notes / Summary Strategies
    # ========================================

    def chunk_notes(self, notes: str) -> list[dict[str, Any]]:
        """Chunk free-form notes by sentences."""
        return [
            {"index": i, "text": text, "metadata": {}}
            for i, text in enumerate(self.chunk(notes))
        ]

    def chunk_summary(self, points: Iterable[str]) -> list[dict[str, Any]]:
        """One chunk per non-empty summary point."""
        texts = [point.strip() for point in points if point and point.strip()]
        return [
            {"index": i, "text": text, "metadata": {}}
            for i, text in enumerate(texts)
        ]

    # ========================================
    # Conversation Strategy
    # ========================================

    def chunk_conversation(
        self,
        messages: Iterable[Union[ConversationMessage, Mapping[str, Any]]]
    ) -> list[dict[str, Any]]:
        """
        Chunk a Q&A conversation exchange by exchange.

        A user message opens an exchange, the following assistant message(s)
        close it. Each exchange is rendered as "Q: ...\\nA: ..." and chunked
        on its own so a chunk never mixes two exchanges.

        Metadata extracted:
        - exchange: 0-based exchange number within the conversation
        """
        exchanges: list[list[str]] = []

        for message in messages:
            if isinstance(message, ConversationMessage):
                role, content = message.role, message.content
            else:
                role, content = message.get("role"), message.get("content")

            content = (content or "").strip()
            if not content:
                continue

            if role == "user" or not exchanges:
                exchanges.append([])
            prefix = "Q" if role == "user" else "A"
            exchanges[-1].append(f"{prefix}: {content}")

        chunks = []
        for exchange_number, parts in enumerate(exchanges):
            for text in self.chunk("\n".join(parts)):
                chunks.append({
                    "index": len(chunks),
                    "text": text,
                    "metadata": {"exchange": exchange_number},
                })

        return chunks

"""
Citation parsing and resolution.

Search results are presented to the answer provider as a 1-based list. The
provider marks claims with bracketed ordinals (``[2]`` or ``[1, 3]``); this
module finds those markers in the answer and maps them back to results.
"""

import re
from typing import Sequence

from vidrecall.schemas.answer import Citation
from vidrecall.schemas.search import SearchResult


CITATION_MARKER = re.compile(r'\[\s*(\d+(?:\s*,\s*\d+)*)\s*\]')


def format_search_result(ordinal: int, result: SearchResult) -> str:
    """Render one presented result as ``[n] (M:SS) [content_type] text``."""
    parts = [f"[{ordinal}]"]
    if result.formatted_timestamp:
        parts.append(f"({result.formatted_timestamp})")
    parts.append(f"[{result.content_type.value}]")
    parts.append(result.content)
    return " ".join(parts)


def extract_citation_ordinals(answer: str) -> list[int]:
    """
    Every ordinal cited in the answer, deduplicated, in first-use order.

    Malformed markers (``[x]``, ``[]``, ``[1-2]``) are ignored.
    """
    ordinals: list[int] = []
    seen: set[int] = set()

    for match in CITATION_MARKER.finditer(answer or ""):
        for number in match.group(1).split(","):
            ordinal = int(number.strip())
            if ordinal not in seen:
                seen.add(ordinal)
                ordinals.append(ordinal)

    return ordinals


def resolve_citations(answer: str, presented: Sequence[SearchResult]) -> list[Citation]:
    """
    Map the answer's markers back to the results it was shown.

    Ordinals outside ``1..len(presented)`` are dropped silently.
    """
    citations = []
    for ordinal in extract_citation_ordinals(answer):
        if not 1 <= ordinal <= len(presented):
            continue
        result = presented[ordinal - 1]
        citations.append(Citation(
            ordinal=ordinal,
            video_id=result.video_id,
            content=result.content,
            content_type=result.content_type,
            timestamp=result.timestamp,
            formatted_timestamp=result.formatted_timestamp,
        ))
    return citations

# /og_preview/domain/meta_extractor.py
from __future__ import annotations

from dataclasses import asdict, dataclass

TAGS: tuple[str, ...] = ("title", "description", "image")
_CONTENT_OPEN = 'content="'


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Open Graph values found in a page head; "" when a tag was not found."""

    title: str = ""
    description: str = ""
    image: str = ""

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


def _content_after(line: str, marker: str) -> str | None:
    at = line.find(marker)
    if at == -1:
        return None
    start = line.find(_CONTENT_OPEN, at + len(marker))
    if start == -1:
        return None
    start += len(_CONTENT_OPEN)
    end = line.find('"', start)
    if end == -1:
        return None
    return line[start:end]


def extract_tags(text: str) -> ExtractionResult:
    """
    Scan text line by line for og:title / og:description / og:image and take the
    content="..." value following each marker. A later line overrides an earlier
    one; a marker without a complete content attribute is skipped.
    """
    found: dict[str, str] = {}
    for line in text.split("\n"):
        for tag in TAGS:
            value = _content_after(line, f"og:{tag}")
            if value is not None:
                found[tag] = value
    return ExtractionResult(**found)

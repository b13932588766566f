"""
Pattern-based extraction of known tags from feed and HTML markup.

This is not an XML parser. It pulls a handful of known elements and
attributes out of documents that may be truncated or malformed, and treats
"no match" as an ordinary missing-field result rather than an error.
"""

import html
import re
from functools import lru_cache
from typing import Iterator

_CDATA_RE = re.compile(r"^<!\[CDATA\[(.*?)\]\]>$", re.DOTALL)

_ATTR_RE = re.compile(
    r"""([^\s=/>"']+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""",
)


@lru_cache(maxsize=128)
def _start_tag_re(tag: str) -> re.Pattern:
    # Quoted attribute values may contain ">".
    return re.compile(
        rf"""<{re.escape(tag)}(\s(?:"[^"]*"|'[^']*'|[^>"'])*)?/?>""",
        re.IGNORECASE,
    )


@lru_cache(maxsize=128)
def _end_tag_re(tag: str) -> re.Pattern:
    return re.compile(rf"</{re.escape(tag)}\s*>", re.IGNORECASE)


def _iter_spans(text: str, tag: str) -> Iterator[tuple[int, int]]:
    """
    Yield ``(start, end)`` of each block body, scanning the text once.

    Self-closing start tags never open a block. The first start tag without
    a matching close ends the scan, since no later block can close either.
    """
    start_re = _start_tag_re(tag)
    end_re = _end_tag_re(tag)
    pos = 0
    while True:
        start = start_re.search(text, pos)
        if start is None:
            return
        if start.group(0).endswith("/>"):
            pos = start.end()
            continue
        end = end_re.search(text, start.end())
        if end is None:
            return
        yield start.end(), end.start()
        pos = end.end()


def _clean(content: str) -> str:
    content = content.strip()
    match = _CDATA_RE.match(content)
    if match:
        return match.group(1).strip()
    return html.unescape(content)


def iter_blocks(text: str, tag: str) -> Iterator[str]:
    """Yield the raw inner text of every ``<tag>...</tag>`` block, in order."""
    text = text or ""
    for start, end in _iter_spans(text, tag):
        yield text[start:end]


def extract_tag(text: str, tag: str) -> str:
    """
    Return the trimmed content of the first ``<tag>`` element.

    A body wrapped entirely in one CDATA section is unwrapped; other bodies
    have character references unescaped. Returns "" when there is no match.
    """
    block = next(iter_blocks(text, tag), None)
    if block is None:
        return ""
    return _clean(block)


def parse_attrs(fragment: str) -> dict[str, str]:
    """Parse ``name="value"`` pairs from the inside of a start tag."""
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(fragment or ""):
        name = match.group(1).lower()
        value = next(v for v in match.group(2, 3, 4) if v is not None)
        attrs.setdefault(name, html.unescape(value))
    return attrs


def iter_tag_attrs(text: str, tag: str) -> Iterator[dict[str, str]]:
    """Yield the attributes of every ``<tag ...>`` start tag, in order."""
    for match in _start_tag_re(tag).finditer(text or ""):
        yield parse_attrs(match.group(1) or "")


def extract_attr(text: str, tag: str, attr: str) -> str:
    """
    Return ``attr`` from the first ``<tag>`` that carries it.

    Attribute order inside the tag does not matter. Returns "" if absent.
    """
    attr = attr.lower()
    for attrs in iter_tag_attrs(text, tag):
        value = attrs.get(attr, "").strip()
        if value:
            return value
    return ""

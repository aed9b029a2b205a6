"""Textual link extraction from note bodies."""

import re
from dataclasses import dataclass, field
from typing import List

# Pattern for wikilinks: [[target]] or [[target|display]]
# The look-behind keeps image embeds (![[...]]) out of page links.
WIKILINK_PATTERN = re.compile(r'(?<!!)\[\[([^\]|]+?)(?:\|[^\]]*)?\]\]')

# Pattern for embeds: ![[image.png]] or ![[image.png|alt]]
WIKI_EMBED_PATTERN = re.compile(r'!\[\[([^\]|]+?)(?:\|[^\]]*)?\]\]')

# Pattern for markdown links: [display](target) or [display](target "title")
MARKDOWN_LINK_PATTERN = re.compile(r'(?<![!\[])\[([^\[\]]*)\]\(\s*<?([^)\s>]+)>?(?:\s+"[^"]*")?\s*\)')

# Pattern for markdown images: ![alt](target)
MARKDOWN_EMBED_PATTERN = re.compile(r'!\[([^\[\]]*)\]\(\s*<?([^)\s>]+)>?(?:\s+"[^"]*")?\s*\)')


@dataclass
class ExtractedLinks:
    """Raw reference targets found in a note, in order of appearance."""
    pages: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)


def extract_links(text: str) -> ExtractedLinks:
    """Extract page and asset references from note text.

    Extraction is purely textual: nothing is resolved against the vault.
    Both wikilink and markdown syntaxes are recognized; a leading `!` marks
    an asset (embed) reference.

    Args:
        text: Note body

    Returns:
        ExtractedLinks with page-style and asset-style targets
    """
    pages = _ordered_targets(text, ((WIKILINK_PATTERN, 1), (MARKDOWN_LINK_PATTERN, 2)))
    assets = _ordered_targets(text, ((WIKI_EMBED_PATTERN, 1), (MARKDOWN_EMBED_PATTERN, 2)))
    return ExtractedLinks(pages=pages, assets=assets)


def _ordered_targets(text: str, patterns) -> List[str]:
    found = []
    for pattern, group in patterns:
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(group).strip()))
    found.sort(key=lambda item: item[0])
    return [target for _, target in found if target]

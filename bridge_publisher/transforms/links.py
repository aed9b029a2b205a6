"""Link rewriting for published note bodies.

Public notes are rendered on the static site, so wikilinks become
root-relative markdown links. Secret notes are served by the blob store:
image embeds point at the store's lookup endpoint and page links become
root-relative paths.
"""

import re
from typing import Callable
from urllib.parse import quote

from bridge_publisher.core.links import (
    MARKDOWN_EMBED_PATTERN,
    MARKDOWN_LINK_PATTERN,
    WIKI_EMBED_PATTERN,
    WIKILINK_PATTERN,
)

BodyTransform = Callable[[str], str]

EXTERNAL_PREFIXES = ('http://', 'https://', 'mailto:', 'data:', '#')

# Captures the display part of a wikilink or embed, if any.
_WIKI_DISPLAY = re.compile(r'\|([^\]]*)\]\]$')


def _display(match: re.Match, fallback: str) -> str:
    found = _WIKI_DISPLAY.search(match.group(0))
    if found and found.group(1).strip():
        return found.group(1).strip()
    return fallback


def root_relative(target: str) -> str:
    """Turn a note reference into a root-relative URL."""
    target = target.strip()
    if target.startswith('/'):
        return target
    if target.lower().endswith('.md'):
        target = target[:-3]
    return '/' + quote(target, safe="/#%")


def _is_external(target: str) -> bool:
    return target.lower().startswith(EXTERNAL_PREFIXES)


def public_links() -> BodyTransform:
    """Create a transform converting wikilinks to root-relative markdown.

    `![[img.png]]` becomes `![img.png](/img.png)` and `[[Note|text]]`
    becomes `[text](/Note)`. Markdown syntax is left for the renderer.
    """
    def transform(body: str) -> str:
        def replace_embed(match: re.Match) -> str:
            target = match.group(1).strip()
            return f"![{_display(match, target)}]({root_relative(target)})"

        def replace_link(match: re.Match) -> str:
            target = match.group(1).strip()
            return f"[{_display(match, target)}]({root_relative(target)})"

        body = WIKI_EMBED_PATTERN.sub(replace_embed, body)
        return WIKILINK_PATTERN.sub(replace_link, body)
    return transform


def secret_links(blob_store_url: str) -> BodyTransform:
    """Create a transform redacting links in a secret note.

    Image embeds are rewritten to resolve through the blob store, using the
    raw reference text as the lookup id. Page links become root-relative
    paths. External URLs are left untouched.

    Args:
        blob_store_url: Base URL of the blob store
    """
    base = blob_store_url.rstrip('/')

    def lookup(target: str) -> str:
        return f"{base}/secure?id={quote(target, safe='')}"

    def transform(body: str) -> str:
        def replace_wiki_embed(match: re.Match) -> str:
            target = match.group(1).strip()
            return f"![{_display(match, target)}]({lookup(target)})"

        def replace_md_embed(match: re.Match) -> str:
            alt, target = match.group(1), match.group(2)
            if _is_external(target):
                return match.group(0)
            return f"![{alt}]({lookup(target)})"

        def replace_wikilink(match: re.Match) -> str:
            target = match.group(1).strip()
            return f"[{_display(match, target)}]({root_relative(target)})"

        def replace_md_link(match: re.Match) -> str:
            text, target = match.group(1), match.group(2)
            if _is_external(target):
                return match.group(0)
            return f"[{text}]({root_relative(target)})"

        body = WIKI_EMBED_PATTERN.sub(replace_wiki_embed, body)
        body = MARKDOWN_EMBED_PATTERN.sub(replace_md_embed, body)
        body = WIKILINK_PATTERN.sub(replace_wikilink, body)
        return MARKDOWN_LINK_PATTERN.sub(replace_md_link, body)
    return transform

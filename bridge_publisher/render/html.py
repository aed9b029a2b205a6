"""Standalone HTML rendering for public notes.

A page is assembled in fixed order: the body is rendered from markdown,
navigation (back-links, the note itself, forward-links) and a metadata
block are added, the markup is cleaned up for self-hosting, and the
result is wrapped in the page shell.
"""

import datetime
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import quote, urlsplit

import inflection
import markdown
import titlecase as tc
from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape

from bridge_publisher.core.models import ClassGraph, PublicNote
from bridge_publisher.transforms.links import BodyTransform, public_links

logger = logging.getLogger(__name__)

SOURCE_URL = "https://github.com/snlxnet/bridge"
DEFAULT_STYLESHEET = "/style.css"
RESOURCE_SCHEME = "app://"
RESOURCE_HOST = "local"

# Relative <img src> values, i.e. not already absolute or scheme-qualified.
_RELATIVE_SRC = re.compile(r'(<img\b[^>]*?\ssrc=")(?![a-zA-Z][a-zA-Z0-9+.-]*:|/)([^"]+)"')


class MarkdownRenderContext:
    """Disposable markdown rendering context.

    Mirrors the host renderer: relative image sources are emitted as
    internal resource URLs (`app://local/<folder>/<src>`) that the page
    clean-up later turns into root-relative paths.

    Usage:
        with MarkdownRenderContext("notes") as ctx:
            html = ctx.render(text)
    """

    def __init__(self, base_path: str = ""):
        self.base_path = base_path.strip('/')
        self._md: Optional[markdown.Markdown] = markdown.Markdown(
            extensions=["fenced_code", "tables", "sane_lists"],
        )

    def __enter__(self) -> "MarkdownRenderContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def render(self, text: str) -> str:
        if self._md is None:
            raise RuntimeError("Render context already disposed")
        html = self._md.reset().convert(text)
        return _RELATIVE_SRC.sub(self._resource_src, html)

    def dispose(self) -> None:
        self._md = None

    def _resource_src(self, match: re.Match) -> str:
        path = posixpath.join(self.base_path, match.group(2)) if self.base_path else match.group(2)
        return f'{match.group(1)}{RESOURCE_SCHEME}{RESOURCE_HOST}/{path}"'


RenderContextFactory = Callable[[str], MarkdownRenderContext]


@dataclass
class NavLink:
    title: str
    href: str


@dataclass
class Label:
    name: str
    slug: str


def page_href(path: str) -> str:
    """Root-relative URL of a note's page."""
    stem = path[:-3] if path.lower().endswith('.md') else path
    return '/' + quote(stem)


def relative_age(date_value: str, now: datetime.datetime) -> str:
    """Describe how long ago `date_value` (an ISO date) was.

    At least a year is shown in years, less than a day in hours, both with
    two decimals; anything in between as whole days. Dates in the future
    count as zero.
    """
    try:
        then = datetime.datetime.fromisoformat(str(date_value).strip())
    except ValueError:
        return str(date_value)
    if then.tzinfo is None:
        then = then.replace(tzinfo=datetime.timezone.utc)

    days = max((now - then).total_seconds() / 86400, 0.0)
    if days >= 365:
        return f"{days / 365:.2f} years"
    if days < 1:
        return f"{days * 24:.2f} hours"
    whole = int(days)
    unit = "day" if whole == 1 else inflection.pluralize("day")
    return f"{whole} {unit}"


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class HtmlRenderer:
    """Renders public notes to self-contained HTML documents.

    Usage:
        renderer = HtmlRenderer()
        html = renderer.render(page, body, graph, titles)
    """

    def __init__(
        self,
        context_factory: RenderContextFactory = MarkdownRenderContext,
        link_transform: Optional[BodyTransform] = None,
        stylesheet: str = DEFAULT_STYLESHEET,
        source_url: str = SOURCE_URL,
        now: Callable[[], datetime.datetime] = utc_now,
        templates_dir: Optional[Path] = None,
    ):
        """
        Initialize the renderer.

        Args:
            context_factory: Creates a disposable render context for a folder
            link_transform: Rewrites the markdown body before rendering
            stylesheet: Stylesheet URL referenced by every page
            source_url: Target of the static source-code link
            now: Clock used for relative ages
            templates_dir: Path to templates directory.
                           Defaults to ./templates relative to this file.
        """
        if templates_dir is None:
            templates_dir = Path(__file__).parent / "templates"

        self.context_factory = context_factory
        self.link_transform = link_transform or public_links()
        self.stylesheet = stylesheet
        self.source_url = source_url
        self.now = now
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "html.jinja2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(
        self,
        page: PublicNote,
        body: str,
        graph: ClassGraph,
        titles: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Render one public note.

        Args:
            page: The note to render
            body: Note text without frontmatter
            graph: Link graph of the public class
            titles: Display names by note path (defaults to file stems)

        Returns:
            Pretty-printed HTML document
        """
        if page.redirect:
            return self.render_redirect(str(page.redirect))

        titles = titles or {}
        path = page.note.path

        with self.context_factory(posixpath.dirname(path)) as context:
            body_html = context.render(self.link_transform(body))

        navigation = self.env.get_template("navigation.html.jinja2").render(
            backlinks=self._nav_links(graph.backlinks(path), titles),
            current=page.title or page.note.stem,
            forward_links=self._nav_links(graph.forward_links(path), titles),
            source_url=self.source_url,
        )
        meta = self._meta_block(page)

        soup = BeautifulSoup(meta + navigation + body_html, "html.parser")
        self._strip_link_targets(soup)
        self._rewrite_resource_urls(soup)
        self._remove_copy_buttons(soup)

        document = self.env.get_template("page.html.jinja2").render(
            title=tc.titlecase(page.title or page.note.stem),
            stylesheet=self.stylesheet,
            content=str(soup),
        )
        return BeautifulSoup(document, "html.parser").prettify()

    def render_redirect(self, target: str) -> str:
        """Minimal document sending the reader to `target`."""
        document = self.env.get_template("redirect.html.jinja2").render(target=target)
        return BeautifulSoup(document, "html.parser").prettify()

    def _nav_links(self, paths: List[str], titles: Dict[str, str]) -> List[NavLink]:
        return [
            NavLink(title=titles.get(p) or posixpath.splitext(posixpath.basename(p))[0], href=page_href(p))
            for p in paths
        ]

    def _meta_block(self, page: PublicNote) -> str:
        now = self.now()
        return self.env.get_template("meta.html.jinja2").render(
            created=relative_age(page.created, now) if page.created else "",
            updated=relative_age(page.updated, now) if page.updated else "",
            labels=[Label(name=l, slug=inflection.parameterize(l)) for l in page.labels],
        )

    @staticmethod
    def _strip_link_targets(soup: BeautifulSoup) -> None:
        for anchor in soup.find_all("a"):
            for attr in ("target", "rel"):
                if attr in anchor.attrs:
                    del anchor[attr]

    @staticmethod
    def _rewrite_resource_urls(soup: BeautifulSoup) -> None:
        for tag in soup.find_all(True):
            for attr in ("src", "href"):
                value = tag.get(attr)
                if isinstance(value, str) and value.startswith(RESOURCE_SCHEME):
                    tag[attr] = urlsplit(value).path or "/"

    @staticmethod
    def _remove_copy_buttons(soup: BeautifulSoup) -> None:
        for button in soup.select(".copy-code-button"):
            button.decompose()

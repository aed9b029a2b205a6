"""Tests for HTML rendering of public notes."""

import datetime

import pytest
from bs4 import BeautifulSoup

from bridge_publisher.core.models import ClassGraph, LinkEdge, PublicNote, VaultFile
from bridge_publisher.render.html import (
    SOURCE_URL,
    HtmlRenderer,
    MarkdownRenderContext,
    page_href,
    relative_age,
)

NOW = datetime.datetime(2026, 10, 17, 12, tzinfo=datetime.timezone.utc)


class FakeContext:
    """Render context returning canned HTML."""

    def __init__(self, html):
        self.html = html
        self.base_paths = []
        self.rendered = []
        self.disposed = 0

    def __call__(self, base_path):
        self.base_paths.append(base_path)
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.disposed += 1

    def render(self, text):
        self.rendered.append(text)
        return self.html


def make_page(path="A.md", **kwargs):
    kwargs.setdefault("updated", "2026-10-17")
    kwargs.setdefault("created", "2026-10-17")
    return PublicNote(note=VaultFile(path), **kwargs)


def render(body, page=None, graph=None, titles=None, context=None):
    renderer = HtmlRenderer(context_factory=context or MarkdownRenderContext, now=lambda: NOW)
    html = renderer.render(page or make_page(), body, graph or ClassGraph(), titles)
    return BeautifulSoup(html, "html.parser")


class TestRelativeAge:
    """Tests for relative_age."""

    @pytest.mark.parametrize("date, expected", [
        ("2024-10-17", "2.00 years"),
        ("2026-10-17", "12.00 hours"),
        ("2026-10-16", "1 day"),
        ("2026-10-07", "10 days"),
        ("not a date", "not a date"),
        ("2026-10-18", "0.00 hours"),
    ])
    def test_ages(self, date, expected):
        assert relative_age(date, NOW) == expected


class TestPageHref:
    """Tests for page_href."""

    def test_strips_extension(self):
        assert page_href("notes/A.md") == "/notes/A"

    def test_quotes(self):
        assert page_href("My Note.md") == "/My%20Note"


class TestMarkdownRenderContext:
    """Tests for MarkdownRenderContext."""

    def test_renders_markdown(self):
        with MarkdownRenderContext() as ctx:
            assert ctx.render("**bold**") == "<p><strong>bold</strong></p>"

    def test_relative_image_becomes_resource_url(self):
        with MarkdownRenderContext("notes") as ctx:
            html = ctx.render("![pic](img.png)")
        assert 'src="app://local/notes/img.png"' in html

    def test_absolute_image_untouched(self):
        with MarkdownRenderContext("notes") as ctx:
            html = ctx.render("![pic](/img.png)")
        assert 'src="/img.png"' in html

    def test_fenced_code(self):
        with MarkdownRenderContext() as ctx:
            html = ctx.render("```\nx = 1\n```")
        assert "<pre><code>x = 1" in html

    def test_disposed_context_refuses_to_render(self):
        with MarkdownRenderContext() as ctx:
            pass
        with pytest.raises(RuntimeError):
            ctx.render("text")


class TestHtmlRenderer:
    """Tests for HtmlRenderer."""

    def test_plain_text(self):
        soup = render("Just some plain text.")

        assert soup.select_one("main#content > p").get_text(strip=True) == "Just some plain text."
        items = soup.select("nav.links li")
        assert len(items) == 1
        assert items[0]["class"] == ["current"]

    def test_page_shell(self):
        soup = render("Body", page=make_page(title="my first note"))

        assert soup.title.get_text(strip=True) == "My First Note"
        assert soup.select_one('link[rel="stylesheet"]')["href"] == "/style.css"

    def test_navigation_order(self):
        graph = ClassGraph(edges={LinkEdge("B.md", "A.md"), LinkEdge("A.md", "C.md")})
        titles = {"B.md": "Bee", "C.md": "Sea"}

        soup = render("Body", page=make_page(title="Aye"), graph=graph, titles=titles)

        items = soup.select("nav.links li")
        assert [li["class"] for li in items] == [["backlink"], ["current"], ["forward-link"]]
        assert items[0].a["href"] == "/B"
        assert items[0].get_text(strip=True) == "Bee"
        assert items[1].get_text(strip=True) == "Aye"
        assert items[2].a["href"] == "/C"

    def test_source_link(self):
        soup = render("Body")
        assert soup.select_one("nav.links p.source a")["href"] == SOURCE_URL

    def test_metadata(self):
        page = make_page(created="2024-10-17", updated="2026-10-17", labels=["Garden Notes"])

        soup = render("Body", page=page)

        assert soup.select_one("span.created").get_text(strip=True) == "created 2.00 years ago"
        assert soup.select_one("span.updated").get_text(strip=True) == "updated 12.00 hours ago"
        assert soup.select_one("ul.labels a")["href"] == "/tags/garden-notes"

    def test_wikilinks_become_site_links(self):
        soup = render("See [[Other Note|other]].")
        link = soup.select_one("main#content > p a")
        assert link["href"] == "/Other%20Note"
        assert link.get_text(strip=True) == "other"

    def test_relative_image_rooted_at_note_folder(self):
        soup = render("![pic](img.png)", page=make_page("notes/A.md"))
        assert soup.select_one("main#content img")["src"] == "/notes/img.png"

    def test_wiki_embed(self):
        soup = render("![[img.png]]")
        assert soup.select_one("main#content img")["src"] == "/img.png"

    def test_resource_urls_rewritten(self):
        context = FakeContext('<p><img src="app://abc123/notes/img.png?1699"></p>')
        soup = render("ignored", context=context)
        assert soup.select_one("main#content img")["src"] == "/notes/img.png"

    def test_link_targets_stripped(self):
        context = FakeContext('<p><a href="https://example.com" target="_blank" rel="noopener">x</a></p>')

        soup = render("ignored", context=context)

        link = soup.select_one("main#content > p a")
        assert link["href"] == "https://example.com"
        assert "target" not in link.attrs
        assert "rel" not in link.attrs

    def test_copy_buttons_removed(self):
        context = FakeContext('<pre><code>x = 1</code><button class="copy-code-button">Copy</button></pre>')

        soup = render("ignored", context=context)

        assert soup.select(".copy-code-button") == []
        assert "x = 1" in soup.select_one("pre code").get_text()

    def test_context_scoped_to_note_folder_and_disposed(self):
        context = FakeContext("<p>x</p>")
        render("[[Note]]", page=make_page("notes/deep/A.md"), context=context)

        assert context.base_paths == ["notes/deep"]
        assert context.rendered == ["[Note](/Note)"]
        assert context.disposed == 1

    def test_redirect(self):
        context = FakeContext("<p>x</p>")

        soup = render("Body", page=make_page(redirect="https://example.com/new"), context=context)

        refresh = soup.select_one('meta[http-equiv="refresh"]')
        assert refresh["content"] == "0; url=https://example.com/new"
        assert soup.select_one("nav") is None
        assert context.base_paths == []

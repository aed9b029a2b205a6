"""Tests for the GitHub and blob store sinks."""

import asyncio
import base64

import httpx
import pytest

from bridge_publisher.core.models import (
    AssetUpload,
    PublicNote,
    RenderedPage,
    SecretNote,
    SecretUpload,
    SinkError,
    VaultFile,
)
from bridge_publisher.sinks.blob_store import BlobStoreSink
from bridge_publisher.sinks.github import COMMIT_MESSAGE, GitHubSink

from fakes import REPO, FakeBlobStore, FakeGitHub


def page(path="A.md", html="<p>A</p>"):
    return RenderedPage(source=PublicNote(note=VaultFile(path), updated="2026-10-17"), html=html)


def secret(identifier="id-1", body="Secret body", path="B.md"):
    return SecretUpload(source=SecretNote(note=VaultFile(path), identifier=identifier, updated="2026-10-17"), body=body)


def asset(path="img.png", content=b"\x89PNG"):
    return AssetUpload(file=VaultFile(path), content=content)


class TestGitHubSink:
    """Tests for GitHubSink."""

    def make_sink(self, fake):
        return GitHubSink("owner/site", "tok", transport=httpx.MockTransport(fake))

    def test_requires_owner_and_name(self):
        with pytest.raises(ValueError):
            GitHubSink("site", "tok")

    def test_single_commit_sequence(self):
        fake = FakeGitHub()

        sha = asyncio.run(self.make_sink(fake).publish([page("notes/A.md")], [asset()]))

        assert sha == "commit-sha"
        assert fake.steps() == [
            ("GET", f"{REPO}/commits/main"),
            ("POST", f"{REPO}/git/trees"),
            ("POST", f"{REPO}/git/commits"),
            ("PATCH", f"{REPO}/git/refs/heads/main"),
        ]

    def test_tree_and_commit(self):
        fake = FakeGitHub()

        asyncio.run(self.make_sink(fake).publish([page("notes/A.md")], [asset()]))

        tree = fake.body_of("/git/trees")
        assert tree["base_tree"] == "base-tree"
        entries = {e["path"]: e for e in tree["tree"]}
        assert set(entries) == {"notes/A.html", "img.png"}
        assert all(e["mode"] == "100644" and e["type"] == "blob" for e in entries.values())
        assert fake.blobs[entries["notes/A.html"]["sha"]] == {"content": "<p>A</p>", "encoding": "utf-8"}
        image_blob = fake.blobs[entries["img.png"]["sha"]]
        assert image_blob["encoding"] == "base64"
        assert base64.b64decode(image_blob["content"]) == b"\x89PNG"

        commit = fake.body_of("/git/commits")
        assert commit == {"message": COMMIT_MESSAGE, "tree": "tree-sha", "parents": ["head-sha"]}
        assert fake.body_of("/git/refs/heads/main") == {"sha": "commit-sha"}

    def test_auth_headers(self):
        seen = []

        def handler(request):
            seen.append(request.headers)
            return FakeGitHub()(request)

        sink = GitHubSink("owner/site", "tok", transport=httpx.MockTransport(handler))
        asyncio.run(sink.publish([page()], []))

        assert all(h["authorization"] == "Bearer tok" for h in seen)
        assert all(h["accept"] == "application/vnd.github+json" for h in seen)

    def test_blob_failure_aborts_before_tree(self):
        fake = FakeGitHub(fail_on="/git/blobs")

        with pytest.raises(SinkError):
            asyncio.run(self.make_sink(fake).publish([page()], [asset()]))

        assert fake.steps() == [("GET", f"{REPO}/commits/main")]

    def test_ref_failure(self):
        fake = FakeGitHub(fail_on="/git/refs")
        with pytest.raises(SinkError):
            asyncio.run(self.make_sink(fake).publish([page()], []))

    def test_non_json_reply(self):
        fake = FakeGitHub(head_text="<html>proxy login</html>")

        with pytest.raises(SinkError):
            asyncio.run(self.make_sink(fake).publish([page()], [asset()]))

        assert fake.body_of("/commits/main") is None
        assert fake.blobs == {}

    def test_unexpected_reply_shape(self):
        def handler(request):
            return httpx.Response(200, json=["not", "a", "commit"])

        sink = GitHubSink("owner/site", "tok", transport=httpx.MockTransport(handler))
        with pytest.raises(SinkError):
            asyncio.run(sink.publish([page()], []))

    def test_missing_branch(self):
        def handler(request):
            return httpx.Response(404, json={"message": "No commit found"})

        sink = GitHubSink("owner/site", "tok", transport=httpx.MockTransport(handler))
        with pytest.raises(SinkError):
            asyncio.run(sink.publish([page()], []))


class TestBlobStoreSink:
    """Tests for BlobStoreSink."""

    def make_sink(self, fake, api_key="secret"):
        return BlobStoreSink("https://store.example.com/", api_key, transport=httpx.MockTransport(fake))

    def test_uploads_notes_and_assets(self):
        fake = FakeBlobStore()

        report = asyncio.run(self.make_sink(fake).publish([secret()], [asset()]))

        assert report.success
        assert sorted(report.published) == ["id-1", "img.png"]
        assert b'filename="id-1.md"' in fake.uploads["id-1"]
        assert b"Secret body" in fake.uploads["id-1"]
        assert b'filename="img.png"' in fake.uploads["img.png"]
        assert b"image/png" in fake.uploads["img.png"]

    def test_partial_failure_does_not_cancel_siblings(self):
        fake = FakeBlobStore(failing_ids={"bad"})

        report = asyncio.run(self.make_sink(fake).publish(
            [secret("id-1"), secret("bad", path="C.md"), secret("id-3", path="D.md")], [],
        ))

        assert not report.success
        assert [f.path for f in report.failures] == ["C.md"]
        assert sorted(report.published) == ["id-1", "id-3"]
        assert set(fake.uploads) == {"id-1", "id-3"}

    def test_missing_identifier_skipped(self):
        fake = FakeBlobStore()

        report = asyncio.run(self.make_sink(fake).publish([secret(""), secret("id-2", path="C.md")], []))

        assert report.success
        assert report.skipped == ["B.md"]
        assert set(fake.uploads) == {"id-2"}

    def test_nothing_to_upload(self):
        report = asyncio.run(self.make_sink(FakeBlobStore()).publish([], []))
        assert report.success
        assert report.published == []

    def test_wrong_key_reported(self):
        report = asyncio.run(self.make_sink(FakeBlobStore(), api_key="wrong").publish([secret()], []))
        assert not report.success
        assert len(report.failures) == 1

    def test_unexpected_error_reported_per_upload(self):
        fake = FakeBlobStore()

        def handler(request):
            if request.url.params.get("id") == "bad":
                raise RuntimeError("connection reset by proxy")
            return fake(request)

        sink = BlobStoreSink("https://store.example.com", "secret", transport=httpx.MockTransport(handler))
        report = asyncio.run(sink.publish([secret("id-1"), secret("bad", path="C.md")], []))

        assert not report.success
        assert [f.path for f in report.failures] == ["C.md"]
        assert "connection reset by proxy" in report.failures[0].error
        assert report.published == ["id-1"]

    def test_upgrade(self):
        assert asyncio.run(self.make_sink(FakeBlobStore()).upgrade()) == "upgraded to v2"

    def test_upgrade_rejected(self):
        with pytest.raises(SinkError):
            asyncio.run(self.make_sink(FakeBlobStore(), api_key="wrong").upgrade())

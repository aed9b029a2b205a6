"""Publish pipeline: classify, graph, diff, render, and fan out to sinks."""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from bridge_publisher.config import PublisherConfig
from bridge_publisher.core.classifier import Classifier
from bridge_publisher.core.graph import GraphBuilder
from bridge_publisher.core.ledger import ChangeLedger, LedgerBatch
from bridge_publisher.core.models import (
    AssetUpload,
    ClassGraph,
    ConcurrentRunError,
    PublicNote,
    PublishResult,
    RenderedPage,
    SecretNote,
    SecretUpload,
    SinkReport,
    VaultFile,
)
from bridge_publisher.core.vault import FileSystemVault
from bridge_publisher.render.html import HtmlRenderer
from bridge_publisher.sinks.blob_store import BlobStoreSink
from bridge_publisher.sinks.github import GitHubSink
from bridge_publisher.transforms.links import BodyTransform, secret_links

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]


class Publisher:
    """Runs one publish operation over a vault.

    Steps:
    1. Classify every note (and normalize its frontmatter)
    2. Build the link graph of the public and the secret class
    3. Filter unchanged notes and assets through the change ledger
    4. Render public notes to HTML, redact secret notes
    5. Publish to GitHub and the blob store concurrently

    The sinks are independent: a failure in one is reported and does not
    stop the other, and neither rolls back the ledger.
    """

    def __init__(
        self,
        vault: FileSystemVault,
        classifier: Classifier,
        ledger: ChangeLedger,
        renderer: HtmlRenderer,
        secret_transform: BodyTransform,
        github: Optional[GitHubSink] = None,
        blob_store: Optional[BlobStoreSink] = None,
        notify: Optional[Notify] = None,
    ):
        self.vault = vault
        self.classifier = classifier
        self.ledger = ledger
        self.renderer = renderer
        self.secret_transform = secret_transform
        self.github = github
        self.blob_store = blob_store
        self.notify = notify
        self._running = False

    async def run(self, dry_run: bool = False) -> PublishResult:
        """Execute the full publishing pipeline.

        Args:
            dry_run: Compute everything but neither persist the ledger nor
                     contact the sinks

        Returns:
            PublishResult with notices and per-sink reports

        Raises:
            ConcurrentRunError: if this publisher is already running
        """
        if self._running:
            raise ConcurrentRunError("A publish run is already in progress")
        self._running = True
        try:
            return await self._run(dry_run)
        finally:
            self._running = False

    async def _run(self, dry_run: bool) -> PublishResult:
        result = PublishResult(dry_run=dry_run)

        classified = await self.classifier.classify_all(self.vault.list_notes())
        result.failures.extend(classified.failures)

        # Re-list after classification: frontmatter writes changed note mtimes.
        builder = GraphBuilder(self.vault, classified, self.vault.list_files())
        public_graph, secret_graph = await asyncio.gather(
            builder.build(classified.public),
            builder.build(classified.secret),
        )

        candidates = LedgerBatch(
            public_notes=list(classified.public),
            secret_notes=list(classified.secret),
            public_assets=_sorted_files(public_graph.assets),
            secret_assets=_sorted_files(secret_graph.assets),
        )
        batch = await self.ledger.filter(candidates, persist=not dry_run)
        self._notice(result, (
            f"Note processing done: {len(batch.public_notes)} public notes, "
            f"{len(batch.public_assets)} public assets, {len(batch.secret_notes)} secret notes, "
            f"{len(batch.secret_assets)} secret assets to publish"
        ))

        titles = {p.note.path: p.title for p in classified.public}
        pages = await self._render_pages(batch.public_notes, public_graph, titles)
        secrets = await self._redact_secrets(batch.secret_notes)

        if dry_run:
            result.published_pages = [p.path for p in pages]
            result.uploaded_secrets = [s.identifier for s in secrets]
            self._notice(result, "Dry run: nothing uploaded")
            return result

        await asyncio.gather(
            self._publish_public(result, pages, batch.public_assets),
            self._publish_secret(result, secrets, batch.secret_assets),
        )
        for report in result.reports.values():
            result.failures.extend(report.failures)
        return result

    async def _render_pages(
        self,
        notes: Sequence[PublicNote],
        graph: ClassGraph,
        titles: Dict[str, str],
    ) -> List[RenderedPage]:
        bodies = await asyncio.gather(*(self.vault.read_body(n.note) for n in notes))
        return [
            RenderedPage(source=note, html=self.renderer.render(note, body, graph, titles))
            for note, body in zip(notes, bodies)
        ]

    async def _redact_secrets(self, notes: Sequence[SecretNote]) -> List[SecretUpload]:
        texts = await asyncio.gather(*(self.vault.read_text(n.note) for n in notes))
        return [
            SecretUpload(source=note, body=self.secret_transform(text))
            for note, text in zip(notes, texts)
        ]

    async def _read_assets(self, assets: Sequence[VaultFile]) -> List[AssetUpload]:
        contents = await asyncio.gather(*(self.vault.read_binary(a) for a in assets))
        return [AssetUpload(file=a, content=c) for a, c in zip(assets, contents)]

    async def _publish_public(
        self,
        result: PublishResult,
        pages: Sequence[RenderedPage],
        assets: Sequence[VaultFile],
    ) -> None:
        if not pages and not assets:
            self._notice(result, "Nothing to publish for public notes")
            return
        if self.github is None:
            self._notice(result, "GitHub is not configured, public notes not uploaded")
            return

        self._notice(result, "Uploading to GitHub")
        report = SinkReport(sink=GitHubSink.name, success=False)
        try:
            uploads = await self._read_assets(assets)
            sha = await self.github.publish(pages, uploads)
        except Exception as e:
            logger.error("Public publish failed: %s", e)
            report.detail = str(e)
            self._notice(result, f"Public publish failed: {e}")
        else:
            report.success = True
            report.detail = sha
            report.published = [p.path for p in pages] + [a.path for a in assets]
            result.published_pages = [p.path for p in pages]
            self._notice(result, "Public notes uploaded")
        result.reports[report.sink] = report

    async def _publish_secret(
        self,
        result: PublishResult,
        notes: Sequence[SecretUpload],
        assets: Sequence[VaultFile],
    ) -> None:
        if not notes and not assets:
            self._notice(result, "Nothing to publish for secret notes")
            return
        if self.blob_store is None:
            self._notice(result, "Blob store is not configured, secret notes not uploaded")
            return

        self._notice(result, "Uploading secret notes")
        try:
            uploads = await self._read_assets(assets)
            report = await self.blob_store.publish(notes, uploads)
        except Exception as e:
            logger.error("Secret publish failed: %s", e)
            report = SinkReport(sink=BlobStoreSink.name, success=False, detail=str(e))

        for path in report.skipped:
            self._notice(result, f"Secret note {path} has no identifier and was skipped")
        if report.success:
            self._notice(result, "Secret notes uploaded")
        else:
            reasons = "; ".join(f"{f.path}: {f.error}" for f in report.failures) or report.detail
            self._notice(result, f"Secret publish failed: {reasons}")
        result.uploaded_secrets = [s.identifier for s in notes if s.identifier in report.published]
        result.reports[report.sink] = report

    def _notice(self, result: PublishResult, message: str) -> None:
        result.notices.append(message)
        if self.notify is not None:
            self.notify(message)
        else:
            logger.info(message)


def _sorted_files(files) -> List[VaultFile]:
    return sorted(files, key=lambda f: f.path)


def create_publisher_from_config(config: PublisherConfig, notify: Optional[Notify] = None) -> Publisher:
    """Wire a Publisher from configuration.

    A sink whose credentials are missing is left out; the run then reports
    that destination as not configured.
    """
    vault = FileSystemVault(config.vault_path)

    github = None
    if config.repository and config.github_token:
        github = GitHubSink(
            repository=config.repository,
            token=config.github_token,
            branch=config.branch,
            api_url=config.github_api_url,
            commit_message=config.commit_message,
            timeout=config.http_timeout,
        )
    else:
        logger.warning("GitHub repository or token not set; public sink disabled")

    blob_store = None
    if config.blob_store_url and config.api_key:
        blob_store = BlobStoreSink(
            base_url=config.blob_store_url,
            api_key=config.api_key,
            timeout=config.http_timeout,
        )
    else:
        logger.warning("Blob store API key not set; secret sink disabled")

    return Publisher(
        vault=vault,
        classifier=Classifier(
            vault,
            public_marker=config.public_marker,
            layout=config.default_layout,
        ),
        ledger=ChangeLedger(vault, sentinel_path=config.ledger_note),
        renderer=HtmlRenderer(stylesheet=config.stylesheet, source_url=config.source_url),
        secret_transform=secret_links(config.blob_store_url),
        github=github,
        blob_store=blob_store,
        notify=notify,
    )

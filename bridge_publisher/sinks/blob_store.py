"""Secret sink: upload notes and assets to the private blob store.

Every artifact is an independent multipart upload authenticated with the
shared secret in the query string. Notes are addressed by their identifier,
assets by filename. A failed upload is reported but neither cancels its
siblings nor undoes the ones that already went through.
"""

import asyncio
import logging
import mimetypes
from typing import List, Optional, Sequence, Tuple

import httpx

from bridge_publisher.core.models import AssetUpload, NoteError, SecretUpload, SinkError, SinkReport

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/upload"
UPGRADE_PATH = "/upgrade"
NOTE_CONTENT_TYPE = "text/markdown; charset=utf-8"


class BlobStoreSink:
    """Client for the blob store's upload and upgrade endpoints."""

    name = "blob-store"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Blob store base URL
            api_key: Shared secret sent as the `pass` query parameter
            timeout: Request timeout in seconds (None waits indefinitely)
            transport: Custom httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def publish(self, notes: Sequence[SecretUpload], assets: Sequence[AssetUpload]) -> SinkReport:
        """Upload every note and asset, each on its own.

        Secret notes without an identifier are dropped with a warning.
        """
        report = SinkReport(sink=self.name, success=True)

        uploads: List[Tuple[str, str, str, bytes, str]] = []
        for note in notes:
            if not note.identifier:
                logger.warning("Secret note %s has no identifier, skipping", note.source.note.path)
                report.skipped.append(note.source.note.path)
                continue
            uploads.append((
                note.source.note.path,
                note.identifier,
                f"{note.identifier}.md",
                note.body.encode("utf-8"),
                NOTE_CONTENT_TYPE,
            ))
        for asset in assets:
            content_type = mimetypes.guess_type(asset.name)[0] or "application/octet-stream"
            uploads.append((asset.path, asset.name, asset.name, asset.content, content_type))

        if not uploads:
            return report

        async with self._client() as client:
            results = await asyncio.gather(
                *(self._upload(client, blob_id, filename, content, ctype)
                  for _, blob_id, filename, content, ctype in uploads),
                return_exceptions=True,
            )

        for (path, blob_id, *_), result in zip(uploads, results):
            if isinstance(result, Exception):
                logger.error("Upload of %s failed: %s", path, result)
                report.failures.append(NoteError(path=path, error=str(result), title=blob_id))
            elif isinstance(result, BaseException):
                raise result
            else:
                report.published.append(blob_id)

        report.success = not report.failures
        if report.failures:
            report.detail = f"{len(report.failures)} of {len(uploads)} uploads failed"
        logger.info("Uploaded %d of %d artifacts to the blob store", len(report.published), len(uploads))
        return report

    async def upgrade(self) -> str:
        """Call the upgrade endpoint and return its plain-text status."""
        async with self._client() as client:
            try:
                resp = await client.get(UPGRADE_PATH, params={"pass": self._api_key})
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise SinkError(f"Upgrade request failed: {e}") from e
        return resp.text

    async def _upload(
        self,
        client: httpx.AsyncClient,
        blob_id: str,
        filename: str,
        content: bytes,
        content_type: str,
    ) -> None:
        resp = await client.post(
            UPLOAD_PATH,
            params={"pass": self._api_key, "id": blob_id},
            files={"file": (filename, content, content_type)},
        )
        resp.raise_for_status()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

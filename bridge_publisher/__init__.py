"""
Bridge Publisher - Publish a note vault to a static site and a private store

Scans an Obsidian-style vault and publishes it to two destinations:
- Public notes, rendered to HTML, committed to a GitHub static site
- Secret notes, redacted, uploaded to a blob store by stable identifier
- Private notes are never published

Only notes and assets that changed since the last run are uploaded.
"""

from bridge_publisher.core.models import (
    BridgeError,
    DiscoveryError,
    NoteError,
    PublishResult,
    SinkError,
)
from bridge_publisher.core.vault import FileSystemVault
from bridge_publisher.core.classifier import Classifier
from bridge_publisher.core.ledger import ChangeLedger
from bridge_publisher.render.html import HtmlRenderer
from bridge_publisher.core.publisher import Publisher, create_publisher_from_config
from bridge_publisher.config import PublisherConfig

__version__ = "0.1.0"

__all__ = [
    "BridgeError",
    "DiscoveryError",
    "NoteError",
    "PublishResult",
    "SinkError",
    "FileSystemVault",
    "Classifier",
    "ChangeLedger",
    "HtmlRenderer",
    "Publisher",
    "PublisherConfig",
    "create_publisher_from_config",
]

"""Core components for Bridge Publisher."""

from bridge_publisher.core.models import (
    ClassGraph,
    ClassifiedNotes,
    LinkEdge,
    PrivateNote,
    PublicNote,
    SecretNote,
    VaultFile,
)
from bridge_publisher.core.links import ExtractedLinks, extract_links
from bridge_publisher.core.vault import FileSystemVault
from bridge_publisher.core.classifier import Classifier
from bridge_publisher.core.graph import GraphBuilder
from bridge_publisher.core.ledger import ChangeLedger, LedgerBatch

__all__ = [
    "ClassGraph",
    "ClassifiedNotes",
    "LinkEdge",
    "PrivateNote",
    "PublicNote",
    "SecretNote",
    "VaultFile",
    "ExtractedLinks",
    "extract_links",
    "FileSystemVault",
    "Classifier",
    "GraphBuilder",
    "ChangeLedger",
    "LedgerBatch",
]

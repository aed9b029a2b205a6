"""Data models for Bridge Publisher."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Set, Union


class BridgeError(Exception):
    """Base class for publishing errors."""


class DiscoveryError(BridgeError):
    """The vault could not be found or enumerated."""


class SinkError(BridgeError):
    """A publish sink failed to complete its upload."""


class ConcurrentRunError(BridgeError):
    """A publish run was started while another one is in progress."""


@dataclass(frozen=True)
class VaultFile:
    """Any file in the vault - a note or a binary attachment."""
    path: str
    mtime: float = 0.0
    ctime: float = 0.0

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def is_markdown(self) -> bool:
        return self.path.lower().endswith('.md')


# Notes are markdown vault files; the alias keeps signatures readable.
Note = VaultFile


@dataclass
class PublicNote:
    """A note bound for the static site."""
    note: Note
    updated: str
    created: str = ""
    layout: str = ""
    title: str = ""
    labels: List[str] = field(default_factory=list)
    redirect: Optional[str] = None


@dataclass
class SecretNote:
    """A note bound for the blob store, addressed by its identifier."""
    note: Note
    identifier: str
    updated: str


@dataclass
class PrivateNote:
    """A note that is never published."""
    note: Note


ClassifiedNote = Union[PublicNote, SecretNote, PrivateNote]


@dataclass
class ClassifiedNotes:
    """Classifier output, split by publication class."""
    public: List[PublicNote] = field(default_factory=list)
    secret: List[SecretNote] = field(default_factory=list)
    private: List[PrivateNote] = field(default_factory=list)
    failures: List["NoteError"] = field(default_factory=list)

    def add(self, classified: ClassifiedNote) -> None:
        if isinstance(classified, PublicNote):
            self.public.append(classified)
        elif isinstance(classified, SecretNote):
            self.secret.append(classified)
        else:
            self.private.append(classified)

    @property
    def excluded_paths(self) -> Set[str]:
        """Notes that must never appear in the link graph."""
        return {p.note.path for p in self.private} | {f.path for f in self.failures}


@dataclass(frozen=True)
class LinkEdge:
    """A navigable reference from one note to another (vault paths)."""
    source: str
    target: str


@dataclass
class ClassGraph:
    """Link edges and referenced assets for one publication class."""
    edges: Set[LinkEdge] = field(default_factory=set)
    assets: Set[VaultFile] = field(default_factory=set)

    def backlinks(self, path: str) -> List[str]:
        """Paths of notes linking to `path`, sorted."""
        return sorted({e.source for e in self.edges if e.target == path and e.source != path})

    def forward_links(self, path: str) -> List[str]:
        """Paths of notes `path` links to, sorted."""
        return sorted({e.target for e in self.edges if e.source == path and e.target != path})


@dataclass
class RenderedPage:
    """A public note rendered to HTML, ready for the static site."""
    source: PublicNote
    html: str

    @property
    def path(self) -> str:
        return str(PurePosixPath(self.source.note.path).with_suffix('.html'))


@dataclass
class SecretUpload:
    """A secret note body prepared for the blob store."""
    source: SecretNote
    body: str

    @property
    def identifier(self) -> str:
        return self.source.identifier


@dataclass
class AssetUpload:
    """An attachment's bytes, read from the vault for upload."""
    file: VaultFile
    content: bytes

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def name(self) -> str:
        return self.file.name


@dataclass
class NoteError:
    """An error that occurred while processing or publishing an artifact.

    Used for errors at any phase: classification, rendering, or publishing.
    """
    path: str
    error: str
    title: Optional[str] = None


@dataclass
class SinkReport:
    """Outcome of one sink's run."""
    sink: str
    success: bool
    published: List[str] = field(default_factory=list)
    failures: List[NoteError] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    detail: str = ""


@dataclass
class PublishResult:
    """Result of a publish operation."""
    notices: List[str] = field(default_factory=list)
    published_pages: List[str] = field(default_factory=list)
    uploaded_secrets: List[str] = field(default_factory=list)
    failures: List[NoteError] = field(default_factory=list)
    reports: Dict[str, SinkReport] = field(default_factory=dict)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return all(r.success for r in self.reports.values())

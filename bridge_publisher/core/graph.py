"""Link graph construction for one publication class."""

import asyncio
import logging
import posixpath
from collections import defaultdict
from typing import Dict, List, Optional, Sequence
from urllib.parse import unquote

from bridge_publisher.core.links import extract_links
from bridge_publisher.core.models import (
    ClassGraph,
    ClassifiedNote,
    ClassifiedNotes,
    LinkEdge,
    Note,
    VaultFile,
)
from bridge_publisher.core.vault import FileSystemVault

logger = logging.getLogger(__name__)

EXTERNAL_PREFIXES = ('http://', 'https://', 'mailto:', 'app://', 'data:')


class FileIndex:
    """Index of vault files by path and by filename."""

    def __init__(self, files: Sequence[VaultFile]):
        self.by_path: Dict[str, VaultFile] = {f.path: f for f in files}
        self.by_name: Dict[str, List[VaultFile]] = defaultdict(list)
        for f in files:
            self.by_name[f.name].append(f)

    def resolve(self, target: str, source: Optional[Note] = None) -> Optional[VaultFile]:
        """Resolve a raw reference to a vault file.

        Tries the raw target, then the target with `.md` appended. Each
        candidate is looked up as a vault path, relative to the source
        note's folder, and finally as a filename unique in the vault.
        """
        target = unquote(target).split('#', 1)[0].strip()
        if not target or target.lower().startswith(EXTERNAL_PREFIXES):
            return None
        target = target.lstrip('/')

        for candidate in (target, f"{target}.md"):
            found = self.by_path.get(candidate)
            if found is None and source is not None:
                relative = posixpath.normpath(
                    posixpath.join(posixpath.dirname(source.path), candidate)
                )
                found = self.by_path.get(relative)
            if found is None:
                matches = self.by_name.get(posixpath.basename(candidate), [])
                if len(matches) == 1:
                    found = matches[0]
            if found is not None:
                return found
        return None


class GraphBuilder:
    """Builds link edges and referenced assets for a set of notes.

    References are resolved against the whole vault, not just the notes of
    the class being built. Edges touching a private note are dropped.
    """

    def __init__(
        self,
        vault: FileSystemVault,
        classified: ClassifiedNotes,
        files: Optional[Sequence[VaultFile]] = None,
    ):
        self.vault = vault
        self.excluded = classified.excluded_paths
        self.index = FileIndex(files if files is not None else vault.list_files())

    async def build(self, notes: Sequence[ClassifiedNote]) -> ClassGraph:
        bodies = await asyncio.gather(*(self.vault.read_body(n.note) for n in notes))

        graph = ClassGraph()
        for classified, body in zip(notes, bodies):
            source = classified.note
            links = extract_links(body)
            for target in links.pages + links.assets:
                resolved = self.index.resolve(target, source)
                if resolved is None:
                    continue
                if resolved.is_markdown:
                    graph.edges.add(LinkEdge(source=source.path, target=resolved.path))
                else:
                    graph.assets.add(resolved)

        total = len(graph.edges)
        graph.edges = {
            e for e in graph.edges
            if e.source not in self.excluded and e.target not in self.excluded
        }
        logger.debug(
            "Built graph: %d edges (%d pruned), %d assets",
            len(graph.edges), total - len(graph.edges), len(graph.assets),
        )
        return graph

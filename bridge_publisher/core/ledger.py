"""Change ledger: skip republishing artifacts that have not changed.

The ledger lives in the frontmatter of a dedicated sentinel note as two
maps, one for notes (path -> update date string) and one for assets
(path -> modification time in seconds).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from bridge_publisher.core.models import Note, PublicNote, SecretNote, VaultFile
from bridge_publisher.core.vault import FileSystemVault, date_string

logger = logging.getLogger(__name__)

LEDGER_NOTE = "bridge-sys.md"
SENTINEL_TEXT = "https://github.com/snlxnet/bridge system file\n"

# Asset mtimes closer than this are treated as unchanged (host clock and
# filesystem jitter). Tunable.
ASSET_TOLERANCE_SECONDS = 15 * 60

NOTES_KEY = "notes"
ASSETS_KEY = "assets"


class ArtifactKind(str, Enum):
    NOTE = "note"
    ASSET = "asset"


@dataclass
class LedgerBatch:
    """Candidate (or surviving) artifacts for both sinks."""
    public_notes: List[PublicNote] = field(default_factory=list)
    secret_notes: List[SecretNote] = field(default_factory=list)
    public_assets: List[VaultFile] = field(default_factory=list)
    secret_assets: List[VaultFile] = field(default_factory=list)


class LedgerState:
    """In-memory ledger maps.

    Each decision records the artifact's current marker, so asking twice
    about an unchanged artifact yields "unchanged" the second time.
    """

    def __init__(
        self,
        notes: Dict[str, str],
        assets: Dict[str, float],
        tolerance: float = ASSET_TOLERANCE_SECONDS,
    ):
        self.notes = dict(notes)
        self.assets = dict(assets)
        self.tolerance = tolerance

    @classmethod
    def from_frontmatter(cls, fm: Dict[str, Any], tolerance: float = ASSET_TOLERANCE_SECONDS) -> "LedgerState":
        notes = fm.get(NOTES_KEY) or {}
        assets = fm.get(ASSETS_KEY) or {}
        return cls(
            notes={str(k): date_string(v) for k, v in notes.items()},
            assets={str(k): float(v) for k, v in assets.items()},
            tolerance=tolerance,
        )

    def should_publish(self, name: str, marker, kind: ArtifactKind) -> bool:
        """Decide whether an artifact changed, and record its current marker.

        Args:
            name: Artifact key (vault path)
            marker: Update date string for notes, mtime for assets
            kind: Which map the artifact belongs to

        Returns:
            True when the artifact must be republished
        """
        if kind is ArtifactKind.NOTE:
            marker = date_string(marker)
            changed = self.notes.get(name) != marker
            self.notes[name] = marker
            return changed

        marker = float(marker)
        previous = self.assets.get(name)
        changed = previous is None or abs(marker - previous) >= self.tolerance
        self.assets[name] = marker
        return changed

    def to_frontmatter(self, fm: Dict[str, Any]) -> None:
        fm[NOTES_KEY] = dict(sorted(self.notes.items()))
        fm[ASSETS_KEY] = dict(sorted(self.assets.items()))


class ChangeLedger:
    """Persistent record of what was last published."""

    def __init__(
        self,
        vault: FileSystemVault,
        sentinel_path: str = LEDGER_NOTE,
        tolerance: float = ASSET_TOLERANCE_SECONDS,
    ):
        self.vault = vault
        self.sentinel_path = sentinel_path
        self.tolerance = tolerance

    async def ensure_sentinel(self) -> Note:
        """Create the sentinel note unless it already exists."""
        return await self.vault.create_note(self.sentinel_path, SENTINEL_TEXT)

    async def load(self) -> LedgerState:
        """Read the ledger maps without modifying them."""
        sentinel = await self.ensure_sentinel()
        fm = await self.vault.read_frontmatter(sentinel)
        return LedgerState.from_frontmatter(fm, self.tolerance)

    async def filter(self, batch: LedgerBatch, persist: bool = True) -> LedgerBatch:
        """Drop unchanged artifacts from `batch` and advance the ledger.

        Runs as one read-modify-write of the sentinel note: every decision
        is computed first, then the updated maps are written once.

        Args:
            batch: Candidate artifacts for both sinks
            persist: Write the advanced ledger back (False for dry runs)

        Returns:
            The artifacts that must be published
        """
        if not persist:
            return self._decide(await self.load(), batch)

        sentinel = await self.ensure_sentinel()
        outcome: Dict[str, LedgerBatch] = {}

        def mutate(fm: Dict[str, Any]) -> None:
            state = LedgerState.from_frontmatter(fm, self.tolerance)
            outcome['batch'] = self._decide(state, batch)
            state.to_frontmatter(fm)

        await self.vault.process_frontmatter(sentinel, mutate)
        return outcome['batch']

    def _decide(self, state: LedgerState, batch: LedgerBatch) -> LedgerBatch:
        survivors = LedgerBatch()
        # An asset linked from both classes is decided once for both sinks.
        asset_decisions: Dict[str, bool] = {}

        def asset_changed(asset: VaultFile) -> bool:
            if asset.path not in asset_decisions:
                asset_decisions[asset.path] = state.should_publish(asset.path, asset.mtime, ArtifactKind.ASSET)
            return asset_decisions[asset.path]

        for note in batch.public_notes:
            if state.should_publish(note.note.path, note.updated, ArtifactKind.NOTE):
                survivors.public_notes.append(note)
            else:
                logger.info("Unchanged public note %s", note.note.path)

        for note in batch.secret_notes:
            if state.should_publish(note.note.path, note.updated, ArtifactKind.NOTE):
                survivors.secret_notes.append(note)
            else:
                logger.info("Unchanged secret note %s", note.note.path)

        for asset in batch.public_assets:
            if asset_changed(asset):
                survivors.public_assets.append(asset)
            else:
                logger.info("Unchanged public asset %s", asset.path)

        for asset in batch.secret_assets:
            if asset_changed(asset):
                survivors.secret_assets.append(asset)
            else:
                logger.info("Unchanged secret asset %s", asset.path)

        return survivors

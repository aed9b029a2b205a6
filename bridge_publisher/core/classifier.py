"""Publication classification and frontmatter normalization."""

import asyncio
import datetime
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from bridge_publisher.core.models import (
    ClassifiedNote,
    ClassifiedNotes,
    Note,
    NoteError,
    PrivateNote,
    PublicNote,
    SecretNote,
)
from bridge_publisher.core.vault import FileSystemVault, date_string
from bridge_publisher.transforms.frontmatter import (
    DEFAULT_LAYOUT,
    compose,
    default_layout,
    prune_and_add,
    stamp_dates,
)

logger = logging.getLogger(__name__)

PUBLIC_MARKER = "snlx.net"
POST_KEY = "post"
IDENTIFIER_KEY = "uuid"

IdGenerator = Callable[[], str]


def random_identifier() -> str:
    return str(uuid.uuid4())


def utc_today() -> str:
    return datetime.datetime.now(datetime.timezone.utc).date().isoformat()


def extract_labels(frontmatter: Dict[str, Any]) -> List[str]:
    """Extract the free-text labels (tags) from frontmatter.

    Handles both list and string formats.
    """
    tag_data = frontmatter.get('tags')
    if isinstance(tag_data, list):
        return [str(tag) for tag in tag_data if tag is not None]
    if isinstance(tag_data, str):
        return [tag_data]
    return []


class Classifier:
    """Assigns every note a publication class.

    Decision table, on the `post` tag and the `uuid` identifier:

    - tag contains the public marker -> public
    - tag set to anything else -> secret; a new identifier is assigned and
      the tag is cleared, so the next run takes the identifier branch
    - no tag, identifier present -> secret
    - neither -> private; the note is left untouched

    Public and secret notes are also normalized: creation date filled in,
    update date stamped, default layout assigned. All changes to one note
    are a single frontmatter read-modify-write.
    """

    def __init__(
        self,
        vault: FileSystemVault,
        id_generator: IdGenerator = random_identifier,
        today: Optional[str] = None,
        public_marker: str = PUBLIC_MARKER,
        layout: str = DEFAULT_LAYOUT,
    ):
        """Initialize Classifier.

        Args:
            vault: Note repository to read and normalize
            id_generator: Source of new identifiers for secret notes
            today: ISO date stamped as the update date (default: today, UTC)
            public_marker: Value of the `post` tag that marks a public note
            layout: Layout assigned to notes without one
        """
        self.vault = vault
        self.id_generator = id_generator
        self.today = today
        self.public_marker = public_marker
        self.layout = layout

    async def classify_all(self, notes: Optional[List[Note]] = None) -> ClassifiedNotes:
        """Classify every note concurrently.

        Returns only once every note's frontmatter write has completed, so
        callers can trust the resulting membership.
        """
        if notes is None:
            notes = self.vault.list_notes()
        today = self.today or utc_today()

        results = await asyncio.gather(
            *(self.classify(note, today) for note in notes),
            return_exceptions=True,
        )

        classified = ClassifiedNotes()
        for note, result in zip(notes, results):
            if isinstance(result, (OSError, ValueError)):
                logger.warning("Failed to classify %s: %s", note.path, result)
                classified.failures.append(NoteError(path=note.path, error=str(result)))
            elif isinstance(result, BaseException):
                raise result
            else:
                classified.add(result)

        logger.info(
            "Classified %d notes: %d public, %d secret, %d private",
            len(notes), len(classified.public), len(classified.secret), len(classified.private),
        )
        return classified

    async def classify(self, note: Note, today: Optional[str] = None) -> ClassifiedNote:
        """Classify and normalize a single note."""
        today = today or self.today or utc_today()
        normalize = compose(stamp_dates(today), default_layout(self.layout))

        def mutate(fm: Dict[str, Any]) -> None:
            post = str(fm.get(POST_KEY) or "")
            identifier = str(fm.get(IDENTIFIER_KEY) or "")

            if self.public_marker in post:
                transform = normalize
            elif post:
                transform = compose(
                    prune_and_add(
                        remove_keys=[POST_KEY],
                        add_fields={IDENTIFIER_KEY: self.id_generator()},
                    ),
                    normalize,
                )
            elif identifier:
                transform = normalize
            else:
                return

            updated = transform(fm, note)
            fm.clear()
            fm.update(updated)

        fm = await self.vault.process_frontmatter(note, mutate)
        return self._variant(note, fm)

    def _variant(self, note: Note, fm: Dict[str, Any]) -> ClassifiedNote:
        post = str(fm.get(POST_KEY) or "")
        identifier = str(fm.get(IDENTIFIER_KEY) or "")

        if self.public_marker in post:
            return PublicNote(
                note=note,
                updated=date_string(fm.get('updated')),
                created=date_string(fm.get('created')),
                layout=str(fm.get('layout') or ""),
                title=str(fm.get('title') or note.stem),
                labels=extract_labels(fm),
                redirect=fm.get('redirect') or None,
            )
        if identifier:
            return SecretNote(
                note=note,
                identifier=identifier,
                updated=date_string(fm.get('updated')),
            )
        return PrivateNote(note=note)

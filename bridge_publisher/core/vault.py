"""Filesystem-backed note repository.

The vault is the only way the pipeline touches notes: it enumerates files,
reads note text and frontmatter, applies frontmatter mutations as a single
read-modify-write per note, and reads attachment bytes.
"""

import asyncio
import copy
import datetime
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from bridge_publisher.core.models import DiscoveryError, Note, VaultFile

logger = logging.getLogger(__name__)

HIDDEN_PREFIXES = ('.',)

FrontmatterMutation = Callable[[Dict[str, Any]], None]


def split_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Split raw note text into (frontmatter, body).

    Returns an empty dict when the note has no (valid) frontmatter block.
    """
    if not content.startswith('---'):
        return {}, content

    parts = content.split('---\n', 2)
    if len(parts) < 3:
        return {}, content

    try:
        frontmatter = yaml.safe_load(parts[1])
    except yaml.YAMLError as e:
        logger.warning("Failed to parse YAML frontmatter: %s", e)
        return {}, content

    if frontmatter is None:
        return {}, parts[2]
    if not isinstance(frontmatter, dict):
        return {}, content

    return frontmatter, parts[2]


def join_frontmatter(frontmatter: Dict[str, Any], body: str) -> str:
    """Serialize frontmatter and body back into note text."""
    if not frontmatter:
        return body
    frontmatter_str = yaml.safe_dump(
        frontmatter,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=True,
    )
    return f"---\n{frontmatter_str}---\n{body}"


def date_string(date_value) -> str:
    """Convert various date formats to string.

    Args:
        date_value: Date in various formats (str, datetime, date, None)

    Returns:
        Date string or empty string
    """
    if date_value is None:
        return ""

    if isinstance(date_value, str):
        return date_value

    if isinstance(date_value, datetime.datetime):
        return date_value.strftime('%Y-%m-%d')

    if isinstance(date_value, datetime.date):
        return date_value.isoformat()

    return str(date_value)


class FileSystemVault:
    """A vault of markdown notes and attachments rooted at a directory."""

    def __init__(self, vault_path: Path):
        """Initialize FileSystemVault.

        Args:
            vault_path: Path to the vault root
        """
        self.vault_path = Path(vault_path).resolve()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def list_files(self) -> List[VaultFile]:
        """Enumerate every non-hidden file in the vault."""
        if not self.vault_path.is_dir():
            raise DiscoveryError(f"Vault not found: {self.vault_path}")

        files = []
        for file_path in sorted(self.vault_path.rglob('*')):
            relative = file_path.relative_to(self.vault_path)
            if any(part.startswith(HIDDEN_PREFIXES) for part in relative.parts):
                continue
            if file_path.is_file():
                files.append(self._stat(file_path))
        return files

    def list_notes(self) -> List[Note]:
        """Enumerate every markdown note in the vault."""
        return [f for f in self.list_files() if f.is_markdown]

    async def read_text(self, note: Note) -> str:
        """Read a note's full text, frontmatter included."""
        return await asyncio.to_thread(self._abs(note.path).read_text, encoding='utf-8')

    async def read_body(self, note: Note) -> str:
        """Read a note's text without the frontmatter block."""
        _, body = split_frontmatter(await self.read_text(note))
        return body

    async def read_frontmatter(self, note: Note) -> Dict[str, Any]:
        frontmatter, _ = split_frontmatter(await self.read_text(note))
        return frontmatter

    async def read_binary(self, file: VaultFile) -> bytes:
        return await asyncio.to_thread(self._abs(file.path).read_bytes)

    async def process_frontmatter(self, note: Note, mutate: FrontmatterMutation) -> Dict[str, Any]:
        """Apply `mutate` to a note's frontmatter and persist it.

        The read, mutation and write happen under a per-note lock, and the
        coroutine only returns once the write is on disk. Nothing is written
        when the mutation leaves the frontmatter unchanged.

        Returns:
            The frontmatter after mutation
        """
        async with self._lock_for(note.path):
            content = await self.read_text(note)
            frontmatter, body = split_frontmatter(content)
            before = copy.deepcopy(frontmatter)
            mutate(frontmatter)
            if frontmatter != before:
                await asyncio.to_thread(
                    self._abs(note.path).write_text,
                    join_frontmatter(frontmatter, body),
                    encoding='utf-8',
                )
            return frontmatter

    async def create_note(self, path: str, text: str) -> Note:
        """Create a note with `text` unless it already exists."""
        async with self._lock_for(path):
            target = self._abs(path)
            if not target.exists():
                target.parent.mkdir(parents=True, exist_ok=True)
                await asyncio.to_thread(target.write_text, text, encoding='utf-8')
                logger.info("Created %s", path)
            return self._stat(target)

    def _abs(self, path: str) -> Path:
        target = (self.vault_path / path).resolve()
        try:
            target.relative_to(self.vault_path)
        except ValueError:
            raise DiscoveryError(f"Refusing to access outside the vault: {path}")
        return target

    def _stat(self, file_path: Path) -> VaultFile:
        st = file_path.stat()
        return VaultFile(
            path=file_path.relative_to(self.vault_path).as_posix(),
            mtime=st.st_mtime,
            ctime=getattr(st, 'st_birthtime', st.st_ctime),
        )

    def _lock_for(self, path: str) -> asyncio.Lock:
        # Locks are bound to the loop that first waits on them.
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._loop = loop
            self._locks = {}
        if path not in self._locks:
            self._locks[path] = asyncio.Lock()
        return self._locks[path]

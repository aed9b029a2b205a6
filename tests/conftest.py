"""Shared test fixtures for Bridge Publisher."""

from pathlib import Path

import pytest

from bridge_publisher.core.vault import FileSystemVault


@pytest.fixture
def vault_dir(tmp_path) -> Path:
    """Return an empty vault directory."""
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def vault(vault_dir) -> FileSystemVault:
    return FileSystemVault(vault_dir)


@pytest.fixture
def write_file(vault_dir):
    """Write a file into the vault; str content is text, bytes are binary."""
    def write(path: str, content) -> Path:
        target = vault_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
        return target
    return write

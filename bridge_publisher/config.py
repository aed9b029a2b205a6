"""Publisher configuration.

Loads settings from a YAML file (bridge.yaml by default); the two secrets
and the target repository can be overridden from the environment or a
.env file next to the config file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from bridge_publisher.core.classifier import PUBLIC_MARKER
from bridge_publisher.core.ledger import LEDGER_NOTE
from bridge_publisher.render.html import DEFAULT_STYLESHEET, SOURCE_URL
from bridge_publisher.sinks.github import COMMIT_MESSAGE, GITHUB_API_URL
from bridge_publisher.transforms.frontmatter import DEFAULT_LAYOUT

DEFAULT_CONFIG_FILE = "bridge.yaml"

# Environment variable -> config field
ENV_OVERRIDES = {
    "BRIDGE_API_KEY": "api_key",
    "BRIDGE_GITHUB_TOKEN": "github_token",
    "BRIDGE_REPOSITORY": "repository",
}


class PublisherConfig(BaseModel):
    """Settings for one vault and its two publish destinations."""
    vault_path: Path = Path(".")

    # Public sink
    repository: str = ""
    branch: str = "main"
    github_token: str = ""
    github_api_url: str = GITHUB_API_URL
    commit_message: str = COMMIT_MESSAGE

    # Secret sink
    blob_store_url: str = "https://snlx.net"
    api_key: str = ""

    # Classification and rendering
    public_marker: str = PUBLIC_MARKER
    default_layout: str = DEFAULT_LAYOUT
    ledger_note: str = LEDGER_NOTE
    stylesheet: str = DEFAULT_STYLESHEET
    source_url: str = SOURCE_URL

    http_timeout: Optional[float] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> PublisherConfig:
        """Load settings from YAML, then apply environment overrides.

        A missing config file is not an error; defaults are used instead.
        """
        path = Path(config_path or DEFAULT_CONFIG_FILE)
        load_dotenv(path.parent / ".env")

        data = {}
        if path.exists():
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                data[field_name] = value

        return cls(**data)

    def require_blob_store(self) -> None:
        if not self.blob_store_url or not self.api_key:
            raise ValueError("blob_store_url and api_key must be set (bridge.yaml or BRIDGE_API_KEY)")

"""Frontmatter transform factories for Bridge Publisher.

These factories create transform functions that normalize note frontmatter
during classification. A transform never mutates its input; it returns the
new frontmatter and the caller persists it.
"""

import datetime
from typing import Any, Callable, Dict, List, Optional

from bridge_publisher.core.models import Note

FrontmatterTransform = Callable[[Dict[str, Any], Note], Dict[str, Any]]

DEFAULT_LAYOUT = "base.njk"


def prune_and_add(
    remove_keys: Optional[List[str]] = None,
    add_fields: Optional[Dict[str, Any]] = None
) -> FrontmatterTransform:
    """Create a transform that removes keys and/or adds fields.

    add_fields are always added/updated after removal.

    Args:
        remove_keys: List of keys to remove
        add_fields: Dict of fields to add/update

    Returns:
        A transform function
    """
    def transform(fm: Dict[str, Any], note: Note) -> Dict[str, Any]:
        result = {k: v for k, v in fm.items() if k not in (remove_keys or [])}
        if add_fields:
            result.update(add_fields)
        return result
    return transform


def stamp_dates(
    today: str,
    created_key: str = "created",
    updated_key: str = "updated",
) -> FrontmatterTransform:
    """Create a transform that stamps creation and update dates.

    The creation date is only filled in when absent, from the file's
    creation time. The update date is always set to `today`.

    Args:
        today: ISO date to stamp as the update date
        created_key: Frontmatter key for the creation date
        updated_key: Frontmatter key for the update date
    """
    def transform(fm: Dict[str, Any], note: Note) -> Dict[str, Any]:
        result = fm.copy()
        if not result.get(created_key):
            created = datetime.datetime.fromtimestamp(note.ctime, tz=datetime.timezone.utc)
            result[created_key] = created.date().isoformat()
        result[updated_key] = today
        return result
    return transform


def default_layout(layout: str = DEFAULT_LAYOUT, key: str = "layout") -> FrontmatterTransform:
    """Create a transform that assigns `layout` when none is set."""
    def transform(fm: Dict[str, Any], note: Note) -> Dict[str, Any]:
        result = fm.copy()
        if not result.get(key):
            result[key] = layout
        return result
    return transform


def compose(*transforms: FrontmatterTransform) -> FrontmatterTransform:
    """Chain transforms left to right."""
    def transform(fm: Dict[str, Any], note: Note) -> Dict[str, Any]:
        result = fm
        for t in transforms:
            result = t(result, note)
        return result
    return transform

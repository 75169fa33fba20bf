"""
Slug Generation
===============

Derives URL-safe identifiers from titles and tracks whether a draft's slug
is still bound to its title.

A slug follows the title until the user edits the slug directly. From then
on the manual value wins for the rest of the draft's life, even if the
title changes again or the user edits the slug back to the derived value.
"""

import re
from typing import Any, Dict, Iterable, Optional

from portfolio_admin.core.config import DEFAULT_SLUG_FALLBACK

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(text: Optional[str], fallback: str = DEFAULT_SLUG_FALLBACK) -> str:
    """
    Convert arbitrary text into a lowercase, hyphen-separated slug.

    The result only contains ``[a-z0-9-]``, never starts or ends with a
    hyphen and never contains two hyphens in a row. ``slugify(slugify(t))``
    equals ``slugify(t)``. Empty results fall back to ``fallback``.

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'
        >>> slugify("  --  ")
        'untitled-project'
    """
    slug = (text or "").lower()
    slug = _DISALLOWED.sub("", slug)
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _HYPHENS.sub("-", slug).strip("-")
    return slug or fallback


def find_slug_conflict(
    slug: str,
    items: Iterable[Dict[str, Any]],
    exclude_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Return the entity in ``items`` already using ``slug``, if any.

    This is a hint for the editor only; the server remains the authority on
    uniqueness.
    """
    for item in items:
        item_id = item.get("_id", item.get("id"))
        if exclude_id is not None and item_id == exclude_id:
            continue
        if item.get("slug") == slug:
            return item
    return None


class SlugBinding:
    """
    Tracks a draft's slug relative to its title.

    Attributes:
        value: The slug as currently shown in the editor.
        manually_edited: True once the user has typed into the slug field.
    """

    def __init__(self, title: str = "", slug: str = "", fallback: str = DEFAULT_SLUG_FALLBACK):
        self.fallback = fallback
        if slug:
            self.value = slug
            # A stored slug that does not match the title was chosen by a person
            self.manually_edited = slug != slugify(title, fallback) if title else True
        else:
            self.value = slugify(title, fallback) if title else ""
            self.manually_edited = False

    def title_changed(self, title: str) -> str:
        """Re-derive the slug from ``title`` unless the slug was edited manually."""
        if not self.manually_edited:
            self.value = slugify(title, self.fallback) if title else ""
        return self.value

    def slug_edited(self, value: str) -> str:
        """Record a manual slug edit. Auto-derivation stops permanently."""
        self.manually_edited = True
        self.value = value or ""
        return self.value

    def resolve(self, title: str) -> str:
        """Normalised slug to send to the server."""
        if self.value:
            return slugify(self.value, self.fallback)
        return slugify(title, self.fallback)

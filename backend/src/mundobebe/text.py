"""Text normalization helpers."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Convert a display name into a URL-safe slug.

    Lowercases, strips accents, collapses every run of non-alphanumeric
    characters into a single hyphen and trims leading/trailing hyphens.
    Idempotent: ``slugify(slugify(x)) == slugify(x)``.

    >>> slugify("Ropa Bebé")
    'ropa-bebe'
    """
    normalized = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(c for c in normalized if not unicodedata.combining(c))
    return _NON_ALNUM.sub("-", ascii_only.lower()).strip("-")


def normalize_code(value: str) -> str:
    """Normalize a short catalog code (colors, sizes, designs...)."""
    return value.strip().upper()


def normalize_email(value: str) -> str:
    return value.strip().lower()

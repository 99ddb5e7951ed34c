"""
Nimble Selector - String Normalization and Ownership Helpers.

Every name, class and type comparison in the engine goes through
normalize_string(). There is no fuzzy or edit-distance matching.
"""
import re
from typing import Iterable, Optional, Set


PLACEHOLDER_IMAGE = "icons/svg/mystery-man.svg"

# Rule tables reference numbered picks of a group, e.g. "Savage Arsenal (2)"
_NUMERIC_SUFFIX = re.compile(r"\s*\(\d+\)\s*$")
_CURLY_APOSTROPHES = re.compile(r"[‘’]")
_WHITESPACE = re.compile(r"\s+")


def normalize_string(value: Optional[str]) -> str:
    """Lowercase, trim and fold curly apostrophes to straight ones."""
    if value is None:
        return ""
    return _CURLY_APOSTROPHES.sub("'", str(value).lower().strip())


def strip_numeric_suffix(name: str) -> str:
    """Remove a trailing parenthesized number: "Ability (2)" -> "Ability"."""
    return _NUMERIC_SUFFIX.sub("", name)


def slugify(value: Optional[str]) -> str:
    """Turn a display name into a class identifier: "The Cheat" -> "the-cheat"."""
    return _WHITESPACE.sub("-", normalize_string(value))


def slug_to_label(slug: str) -> str:
    """
    Convert a hyphenated group slug to a readable label.

    "savage-arsenal" -> "Savage Arsenal"
    """
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-"))


def capitalize(value: str) -> str:
    return value[:1].upper() + value[1:] if value else ""


def build_owned_item_keys(items: Iterable, item_type: str) -> Set[str]:
    """
    Build the set of keys identifying items an actor already owns.

    The set holds the normalized name and the content-source reference of
    every owned record of the given item type.

    Args:
        items: Owned records (anything with item_type, name and source_id)
        item_type: "feature", "spell" or "equipment"

    Returns:
        Set of normalized names and source references
    """
    keys: Set[str] = set()
    for item in items:
        if item.item_type != item_type:
            continue
        keys.add(normalize_string(item.name))
        if item.source_id:
            keys.add(item.source_id)
    return keys


def is_owned(owned_keys: Set[str], name: str, identity: Optional[str]) -> bool:
    """Duplicate-detection rule: normalized name OR source reference matches."""
    if normalize_string(name) in owned_keys:
        return True
    return bool(identity) and identity in owned_keys

"""Part number resolution from file names and user input."""
import re

MIN_INFERRED_LENGTH = 3

_EXTENSION = re.compile(r"\.[^/.]+$")
_DISALLOWED = re.compile(r"[^A-Za-z0-9\-_]")


def normalize(value):
    """Trim and upper-case a part number. ``None`` becomes ``""``."""
    return (value or "").strip().upper()


def from_file_name(file_name):
    """Infer a part number from a file name.

    Drops the last extension and every character outside ``[A-Za-z0-9_-]``.
    Returns None when fewer than 3 characters remain.
    """
    stem = _EXTENSION.sub("", file_name or "")
    candidate = normalize(_DISALLOWED.sub("", stem))
    if len(candidate) < MIN_INFERRED_LENGTH:
        return None
    return candidate


def from_explicit(value):
    return normalize(value)


def resolve(file_name, explicit=None):
    """Return ``(part_number, is_auto_matched)`` for an upload.

    An explicit, non-blank part number always wins. Otherwise the number is
    inferred from the file name; ``""`` means the image stays unlinked.
    """
    explicit = from_explicit(explicit)
    if explicit:
        return explicit, False
    inferred = from_file_name(file_name)
    if inferred:
        return inferred, True
    return "", False

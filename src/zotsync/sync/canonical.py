"""
Content hashing and marker injection for generated notes.

The hash is taken over the exact UTF-8 bytes that will be written, after
the marker has been injected, so unchanged inputs always hash the same.
"""

import hashlib

from ..core.models import Library, RecordKind

MARKER_FIELD = "zotero-key"
FRONT_MATTER_DELIMITER = "---"


def compute_content_hash(content: str) -> str:
    """
    Compute the SHA256 hash of note content.

    Args:
        content: Final note content, marker included

    Returns:
        Hex-encoded SHA256 hash string
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def build_marker(library: Library, kind: RecordKind, key: str) -> str:
    """Return the identifying token for a record, e.g. '/users/1/item/ABCD1234'."""
    return f"{library.prefix.rstrip('/')}/{kind.value}/{key}"


def inject_marker(content: str, marker: str) -> str:
    """
    Put the marker into the YAML front matter of a note.

    Front matter is created when the note has none. An existing marker
    line is replaced with the given marker.
    """
    marker_line = f"{MARKER_FIELD}: {marker}"
    lines = content.split("\n")

    if lines and lines[0].rstrip() == FRONT_MATTER_DELIMITER:
        for index in range(1, len(lines)):
            stripped = lines[index].rstrip()
            if stripped == FRONT_MATTER_DELIMITER:
                break
            if stripped.startswith(f"{MARKER_FIELD}:"):
                lines[index] = marker_line
                return "\n".join(lines)
        else:
            # Unterminated front matter is treated as body text
            return f"{FRONT_MATTER_DELIMITER}\n{marker_line}\n{FRONT_MATTER_DELIMITER}\n{content}"
        lines.insert(1, marker_line)
        return "\n".join(lines)

    return f"{FRONT_MATTER_DELIMITER}\n{marker_line}\n{FRONT_MATTER_DELIMITER}\n{content}"


def extract_marker(content: str) -> str:
    """Return the marker of a note, or an empty string if it has none."""
    lines = content.split("\n")
    if not lines or lines[0].rstrip() != FRONT_MATTER_DELIMITER:
        return ""
    for line in lines[1:]:
        stripped = line.rstrip()
        if stripped == FRONT_MATTER_DELIMITER:
            break
        if stripped.startswith(f"{MARKER_FIELD}:"):
            return stripped[len(MARKER_FIELD) + 1:].strip()
    return ""

"""
Label parsing and embedding-content synthesis for issue rows.
"""

import json
from typing import List, Optional


def parse_label_names(labels_json: Optional[str]) -> List[str]:
    """Extract label names from the JSON label column.

    Accepts a JSON array of ``{"name": ...}`` objects or of bare strings.
    Empty, NULL or malformed input yields an empty list rather than an error.
    """
    if not labels_json:
        return []

    try:
        parsed = json.loads(labels_json)
    except (ValueError, TypeError):
        return []

    if not isinstance(parsed, list):
        return []

    names = []
    for label in parsed:
        if isinstance(label, dict):
            name = label.get("name")
        elif isinstance(label, str):
            name = label
        else:
            name = None
        if name:
            names.append(str(name))
    return names


def format_labels(labels_json: Optional[str]) -> str:
    """Comma-joined label names, empty string when there are none."""
    return ", ".join(parse_label_names(labels_json))


def build_issue_content(title: Optional[str], description: Optional[str], labels_json: Optional[str]) -> str:
    """Deterministic text blob that gets embedded for an issue."""
    return (
        f"Title: {title or ''}\n"
        f"Description: {description or ''}\n"
        f"Labels: {format_labels(labels_json)}"
    )

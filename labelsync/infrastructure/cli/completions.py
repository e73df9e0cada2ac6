"""Minimal autocompletion functions for the labelsync CLI."""

from labelsync.domain.labels import KNOWN_LABELS


def complete_label_names(incomplete: str) -> list[str]:
    """Complete label names and slugs from the seeded label set."""
    wanted = incomplete.lower()
    candidates = [label.name for label in KNOWN_LABELS] + [
        label.slug for label in KNOWN_LABELS
    ]
    return sorted(c for c in candidates if c.lower().startswith(wanted))

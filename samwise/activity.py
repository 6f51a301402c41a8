"""Status payload formatting for the presence protocol."""

from .config import MAX_STATUS_LENGTH


def format_activity(text: str, max_chars: int = MAX_STATUS_LENGTH) -> str:
    """Truncate a summary to the presence field limit.

    Hard cut at ``max_chars`` characters: no word boundaries, no ellipsis,
    since anything appended would itself count against the limit.
    """
    if max_chars < 0:
        raise ValueError(f"max_chars must be >= 0, got {max_chars}")
    return text[:max_chars]

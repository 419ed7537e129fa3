"""User-facing texts rendered by the pipeline."""

WAITING = "⌛"
WORKING = "🤔"


def render_position(position: int) -> str:
    """Text shown while a request waits (position > 0) or runs (position 0)."""
    if position > 0:
        return f"⌛: queued (position {position})"
    return WORKING


def backend_failure(backend_name: str) -> str:
    return f"⚠️ {backend_name} API error, please try again later."

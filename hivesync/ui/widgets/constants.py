"""Shared helpers for UI widgets."""

STATUS_LABELS: dict[str, str] = {
    "free": "Free",
    "trial": "Trial",
    "pro": "Pro",
    "expired": "Expired",
}


def trunc(text: str, width: int) -> str:
    """Truncate to width, marking the cut with an ellipsis."""
    if len(text) <= width:
        return text
    return text[: width - 1] + "…"

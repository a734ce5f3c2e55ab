import re
from datetime import date
from typing import Optional


def safe_name(name: Optional[str], fallback: str = "badges") -> str:
    """
    Convert a display name into a filename-safe token.
    - Every character outside letters/numbers becomes an underscore
    - Runs of underscores collapse; leading/trailing ones are dropped
    - Falls back to `fallback`
    """
    raw = "" if name is None else str(name)
    safe = re.sub(r"[^A-Za-z0-9]", "_", raw.strip())
    safe = re.sub(r"_+", "_", safe).strip("_")
    return safe or fallback


def badge_pdf_filename(context_name: Optional[str], kind: str = "badges", on: Optional[date] = None) -> str:
    """`{event}_{kind}_{YYYY-MM-DD}.pdf`, e.g. `Spring_Summit_badges_2026-04-01.pdf`."""
    day = (on or date.today()).isoformat()
    return f"{safe_name(context_name, 'event')}_{safe_name(kind)}_{day}.pdf"

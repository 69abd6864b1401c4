from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class OutputJournal:
    """Append-only text file of head outputs, one ``<iso>: <output>`` line each."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, output: str, at: Optional[datetime] = None) -> None:
        at = at or datetime.now(timezone.utc)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"{at.isoformat()}: {output}\n")

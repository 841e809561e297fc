"""Storage helpers for rendered markdown and append-only JSON ledgers."""

from __future__ import annotations

import asyncio
import json
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict

from stock_scraper.core.errors import PersistenceError

MAX_NAME_ATTEMPTS = 100

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def safe_file_stem(ticker: str) -> str:
    """Map a ticker to a single path component (`BRK/B` -> `BRK_B`)."""
    stem = _UNSAFE_NAME_CHARS.sub("_", ticker.strip())
    return stem.lstrip(".") or "_"


class MarkdownStore:
    """Write per-ticker markdown files named `<TICKER>_<epoch_ms>.md`."""

    def __init__(self, output_dir: Path | str, clock: Callable[[], float] = time.time) -> None:
        self.output_dir = Path(output_dir)
        self._clock = clock

    def _write(self, ticker: str, markdown: str) -> str:
        """Create the file exclusively; suffix the name on clash.

        Returns:
            Generated file name (relative to the output directory).
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Cannot create output directory: {exc}",
                path=str(self.output_dir),
                operation="mkdir",
                ticker=ticker,
            ) from exc

        stem = safe_file_stem(ticker)
        root = self.output_dir.resolve()
        stamp = int(self._clock() * 1000)
        for attempt in range(MAX_NAME_ATTEMPTS):
            filename = f"{stem}_{stamp}.md" if attempt == 0 else f"{stem}_{stamp}-{attempt}.md"
            target = self.output_dir / filename
            if target.resolve().parent != root:
                raise PersistenceError(
                    "Markdown file name escapes the output directory",
                    path=str(target),
                    operation="write",
                    ticker=ticker,
                )
            try:
                with target.open("x", encoding="utf-8") as handle:
                    handle.write(markdown)
                return filename
            except FileExistsError:
                continue
            except OSError as exc:
                raise PersistenceError(
                    f"Failed to write markdown: {exc}",
                    path=str(target),
                    operation="write",
                    ticker=ticker,
                ) from exc

        raise PersistenceError(
            "Could not allocate a unique markdown file name",
            path=str(self.output_dir),
            operation="write",
            ticker=ticker,
        )

    async def write_markdown(self, ticker: str, markdown: str) -> str:
        return await asyncio.to_thread(self._write, ticker, markdown)


def append_json_line(path: Path, record: Dict[str, Any]) -> None:
    """Append one JSON document per line, creating parent directories."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, sort_keys=True, default=str) + "\n")
    except OSError as exc:
        raise PersistenceError(f"Failed to append to {path.name}: {exc}", path=str(path), operation="append") from exc


__all__ = ["MarkdownStore", "append_json_line", "safe_file_stem"]

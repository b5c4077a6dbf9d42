from __future__ import annotations

from abc import ABC, abstractmethod
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from vendortal_cli.client import VendorTalClient
from vendortal_cli.formatters.json_formatter import JsonFormatter
from vendortal_cli.formatters.markdown_formatter import MarkdownFormatter

MAX_LINE_LENGTH = 120


def format_bullet(text: str, break_long_words: bool = False) -> str:
    return textwrap.fill(
        f"- {text}",
        width=MAX_LINE_LENGTH,
        subsequent_indent="  ",
        break_long_words=break_long_words,
        break_on_hyphens=False,
    )


def export_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")


class BaseExporter(ABC):
    def __init__(
        self,
        client: VendorTalClient,
        user_id: str,
        output_dir: Path,
        *,
        force: bool = False,
        keep_raw_json: bool = False,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.output_dir = output_dir
        self.force = force
        self.keep_raw_json = keep_raw_json
        self._overwrite_all = False
        self._md_formatter = MarkdownFormatter()
        self._json_formatter = JsonFormatter()

    @abstractmethod
    def export(self) -> None:
        """Fetch data from the API and write to output_dir."""
        ...

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _log(self, message: str) -> None:
        print(message)

    def _should_write(self, path: Path) -> bool:
        """Check whether *path* should be written, prompting if needed."""
        if not path.exists():
            return True
        if self.force or self._overwrite_all:
            return True
        while True:
            answer = input(
                f"Overwrite existing {path.name}? [Yes/No/All] "
            ).strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer in ("a", "all"):
                self._overwrite_all = True
                return True

    def _write_markdown(
        self,
        file_stem: str,
        title: str,
        body: str,
        frontmatter: Dict[str, Any],
        raw: Any = None,
    ) -> None:
        """Write ``<file_stem>.md``, plus the raw record as JSON when asked to."""
        md_path = self.output_dir / f"{file_stem}.md"
        if self._should_write(md_path):
            self._md_formatter.write(
                MarkdownFormatter.render(title=title, body=body, frontmatter=frontmatter),
                md_path,
            )

        if self.keep_raw_json and raw is not None:
            json_path = self.output_dir / f"{file_stem}.json"
            if self._should_write(json_path):
                self._json_formatter.write(raw, json_path)

    def _write_index(self, title: str, noun: str, entries: List[List[str]]) -> None:
        """Write ``index.md`` with one section of bullet lines per document."""
        now = datetime.now(timezone.utc)
        frontmatter: Dict[str, Any] = {
            "generated": export_timestamp(now),
            "document_count": len(entries),
        }
        label = noun if len(entries) == 1 else noun + "s"
        body_parts = [f"{len(entries)} {label} exported on {now.strftime('%Y-%m-%d')}.", ""]
        for lines in entries:
            body_parts.extend(lines)
            body_parts.append("")

        index_path = self.output_dir / "index.md"
        if self._should_write(index_path):
            self._md_formatter.write(
                MarkdownFormatter.render(title=title, body="\n".join(body_parts), frontmatter=frontmatter),
                index_path,
            )

    def _log_done(self, label: str, codes: List[str]) -> None:
        if codes:
            self._log(
                f"Exporting {label}... "
                + ", ".join(codes)
                + f" done ({len(codes)} documents)"
            )
        else:
            self._log(f"Exporting {label}... done (0 documents)")

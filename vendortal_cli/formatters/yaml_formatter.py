from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from vendortal_cli.formatters.base import plain_data


class YamlFormatter:
    """YAML input files and the templates printed for them."""

    @staticmethod
    def dump(data: Any) -> str:
        return yaml.safe_dump(
            plain_data(data),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    @staticmethod
    def load(path: Path) -> Any:
        """Read a YAML input file; an empty file loads as an empty mapping."""
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from vendortal_cli.formatters.base import BaseFormatter, plain_data


class JsonFormatter(BaseFormatter):
    def dumps(self, data: Any) -> str:
        return json.dumps(plain_data(data), indent=2, ensure_ascii=False) + "\n"

    def write(self, data: Any, output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self.dumps(data))

    def file_extension(self) -> str:
        return ".json"

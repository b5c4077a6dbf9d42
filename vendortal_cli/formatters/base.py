from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any


def plain_data(data: Any) -> Any:
    """Turn dataclass instances into dicts so serializers only see builtins."""
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    if isinstance(data, (list, tuple)):
        return [plain_data(item) for item in data]
    return data


class BaseFormatter(ABC):
    @abstractmethod
    def write(self, data: Any, output_path: Path) -> None:
        ...

    @abstractmethod
    def file_extension(self) -> str:
        ...

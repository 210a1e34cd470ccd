from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from typing_extensions import TypeAlias

TableRows: TypeAlias = list[list[str]]


@dataclass(frozen=True)
class StatusMessage:
    text: str
    level: str
    until: Optional[float]

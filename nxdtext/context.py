from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict


@dataclass
class ParseContext:
    """
    What the translator host hands to a plugin for one file.
    """
    path: Path
    project: Dict[str, Any] = field(default_factory=dict)
    original_text: str = ""

    def __post_init__(self) -> None:
        self.path = Path(self.path)

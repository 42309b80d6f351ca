from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional


@dataclass(frozen=True)
class RawFileSequence:
    """
    Naming of the numbered raw canvas files written by the acquisition software.

    Typical names (prefix "data", digits 3):
      data_000.txt, data_001.txt, ...
    with a descriptor written next to each one:
      data_000.txt.dsc

    prefix:
      Everything before the separator, may include a directory.
    digits:
      Zero-padding width of the index. Indices wider than this are not truncated.
    """
    prefix: str
    digits: int
    separator: str = "_"
    extension: str = ".txt"
    descriptor_suffix: str = ".dsc"

    def __post_init__(self) -> None:
        if int(self.digits) < 0:
            raise ValueError(f"digits must be >= 0, got {self.digits}")

    def name_for(self, index: int) -> str:
        if index < 0:
            raise ValueError(f"index must be >= 0, got {index}")
        return f"{self.prefix}{self.separator}{int(index):0{int(self.digits)}d}{self.extension}"

    def path_for(self, index: int) -> Path:
        return Path(self.name_for(index))

    def descriptor_for(self, index: int) -> Path:
        return Path(self.name_for(index) + self.descriptor_suffix)

    def paths(self, count: Optional[int] = None) -> Iterator[Path]:
        """Expected raw paths for index 0, 1, ... (endless when count is None)."""
        i = 0
        while count is None or i < count:
            yield self.path_for(i)
            i += 1

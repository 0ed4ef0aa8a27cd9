from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Version:
    uri: str  # file backing this state, inside the picture's temp folder
    width: int = 0
    height: int = 0

    def with_size(self, width: int, height: int) -> Version:
        return replace(self, width=int(width), height=int(height))

    def same_size(self, other: Version) -> bool:
        return self.width == other.width and self.height == other.height

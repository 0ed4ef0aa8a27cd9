from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EditResult:
    """Outcome of a mutating picture operation.

    ``ok`` says whether the operation took effect; ``size_changed`` says whether
    the picture's current dimensions differ from before. A failed operation
    never changes the picture, so ``size_changed`` is always False for it.
    """

    ok: bool
    size_changed: bool = False
    reason: str | None = None

    @classmethod
    def success(cls, size_changed: bool = False) -> EditResult:
        return cls(ok=True, size_changed=size_changed)

    @classmethod
    def failure(cls, reason: str) -> EditResult:
        return cls(ok=False, reason=reason)

    @property
    def same_size(self) -> bool:
        return self.ok and not self.size_changed

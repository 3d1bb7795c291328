from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Entry:
    """A cached value plus the kind it was declared with.

    ``declared_kind`` of ``None`` means the value is unconstrained.
    """

    value: object
    declared_kind: type | None = None

    @classmethod
    def wrap(cls, value: object) -> Entry:
        """Wrap a raw value, recording its runtime type as the declared kind."""

        if value is None:
            return cls(value=None, declared_kind=None)
        return cls(value=value, declared_kind=type(value))

    def is_valid(self) -> bool:
        if self.declared_kind is None:
            return True
        if not isinstance(self.declared_kind, type):
            return False
        return isinstance(self.value, self.declared_kind)

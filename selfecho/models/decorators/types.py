from typing import Any, Iterable

from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator


class FlagSetType(TypeDecorator[frozenset[str]]):
    """Stores a set of IMAP flags as one space separated text column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Iterable[str] | None, dialect: Any) -> str:
        if not value:
            return ""
        # Sorted so that equal sets serialize identically.
        return " ".join(sorted({flag for flag in value if flag}))

    def process_result_value(self, value: str | None, dialect: Any) -> frozenset[str]:
        if not value:
            return frozenset()
        return frozenset(value.split())

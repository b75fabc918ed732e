"""Transient user-visible notices (toasts)."""

from dataclasses import asdict, dataclass
from enum import Enum


class NoticeVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: NoticeVariant = NoticeVariant.DEFAULT

    def to_dict(self) -> dict:
        data = asdict(self)
        data["variant"] = self.variant.value
        return data


class NoticeBoard:
    """Pending notices for one view; the view drains them after rendering."""

    def __init__(self) -> None:
        self._pending: list[Notice] = []

    def info(self, title: str, description: str) -> None:
        self._pending.append(Notice(title, description))

    def error(self, title: str, description: str) -> None:
        self._pending.append(Notice(title, description, NoticeVariant.DESTRUCTIVE))

    @property
    def pending(self) -> tuple[Notice, ...]:
        return tuple(self._pending)

    def drain(self) -> list[Notice]:
        """Return pending notices and dismiss them."""
        notices, self._pending = self._pending, []
        return notices

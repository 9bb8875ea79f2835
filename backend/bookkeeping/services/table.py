"""Transaction table pipeline: column filters, sorting and pagination.

The table works on the full transaction list and is independent of the
report period and receiver selection.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from bookkeeping.services.periods import parse_local_date
from bookkeeping.services.reports import Transaction, coerce_amount, parse_amount, within_dates

TEXT_COLUMNS = ("category", "subcategory", "sender", "receiver", "remarks")
SORT_KEYS = ("date", "category", "subcategory", "sender", "receiver", "amount", "remarks")
TEXT_OPERATORS = ("contains", "equals", "starts", "ends")
DEFAULT_SORT_DIRECTION = "desc"


@dataclass(frozen=True)
class TextFilter:
    operator: str
    value: str

    def matches(self, raw: Any) -> bool:
        needle = (self.value or "").lower()
        if not needle:
            return True
        haystack = ("" if raw is None else str(raw)).lower()
        if self.operator == "contains":
            return needle in haystack
        if self.operator == "equals":
            return haystack == needle
        if self.operator == "starts":
            return haystack.startswith(needle)
        if self.operator == "ends":
            return haystack.endswith(needle)
        raise ValueError(f"Unknown text operator: {self.operator}")


@dataclass(frozen=True)
class ColumnFilters:
    text: dict[str, TextFilter] = field(default_factory=dict)
    sets: dict[str, frozenset[str]] = field(default_factory=dict)
    from_date: str = ""
    to_date: str = ""
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None

    def matches(self, tx: Transaction) -> bool:
        for column, text_filter in self.text.items():
            if not text_filter.matches(tx.get(column)):
                return False
        for column, allowed in self.sets.items():
            if allowed and tx.get(column) not in allowed:
                return False
        if not within_dates(tx.get("date"), self.from_date, self.to_date):
            return False
        return self._amount_matches(tx.get("amount"))

    def _amount_matches(self, raw: Any) -> bool:
        if self.min_amount is None and self.max_amount is None:
            return True
        amount = parse_amount(raw)
        if amount is None:
            return False
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True


@dataclass(frozen=True)
class SortState:
    key: str = "date"
    direction: str = DEFAULT_SORT_DIRECTION
    page: int = 1


def toggle_sort(state: SortState, key: str) -> SortState:
    """Clicking the active column flips direction; a new column starts descending on page 1."""
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}")
    if key == state.key:
        return replace(state, direction="asc" if state.direction == "desc" else "desc")
    return SortState(key=key, direction=DEFAULT_SORT_DIRECTION, page=1)


def apply_column_filters(transactions: Iterable[Transaction], filters: ColumnFilters) -> list[Transaction]:
    return [tx for tx in transactions if filters.matches(tx)]


def _sort_value(tx: Transaction, key: str) -> tuple:
    raw = tx.get(key)
    if key == "date":
        parsed = parse_local_date(raw)
        if parsed is not None:
            return (0, parsed.toordinal(), "")
        # Unparseable dates sort after real ones, by their raw text.
        return (1, 0, "" if raw is None else str(raw))
    if key == "amount":
        return (coerce_amount(raw),)
    return (("" if raw is None else str(raw)).lower(),)


def sort_transactions(transactions: Iterable[Transaction], key: str, direction: str) -> list[Transaction]:
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}")
    return sorted(transactions, key=lambda tx: _sort_value(tx, key), reverse=direction == "desc")


def sort_and_page(
    transactions: Iterable[Transaction],
    sort_key: str,
    direction: str,
    page: int,
    page_size: int,
) -> dict[str, Any]:
    """One 1-indexed page of the sorted list.

    ``total_pages`` is never below 1, so an empty list is a single empty page.
    Out-of-range page numbers are clamped.
    """
    ordered = sort_transactions(transactions, sort_key, direction)
    page_size = max(1, int(page_size))
    total_pages = max(1, math.ceil(len(ordered) / page_size))
    page = min(max(1, int(page)), total_pages)
    start = (page - 1) * page_size
    return {
        "items": ordered[start : start + page_size],
        "page": page,
        "page_size": page_size,
        "total": len(ordered),
        "total_pages": total_pages,
    }

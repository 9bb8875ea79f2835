from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from bookkeeping.services.periods import DateRange, previous_period, resolve_period

INCOME = "Income"
EXPENSE = "Expense"
UNASSIGNED_RECEIVER = "Unassigned"

ZERO = Decimal("0")

Transaction = Mapping[str, Any]


@dataclass(frozen=True)
class ReportFilter:
    mode: str = "allTime"
    period: DateRange = field(default_factory=DateRange)
    receiver: str = ""


def parse_amount(value: Any) -> Decimal | None:
    """Numeric value of a stored amount, or None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def coerce_amount(value: Any) -> Decimal:
    number = parse_amount(value)
    return ZERO if number is None else number


def within_dates(value: Any, from_date: str = "", to_date: str = "") -> bool:
    # Zero-padded YYYY-MM-DD strings order the same way as the dates they name.
    text = "" if value is None else str(value)
    if from_date and text < from_date:
        return False
    if to_date and text > to_date:
        return False
    return True


def filter_transactions(transactions: Iterable[Transaction], params: ReportFilter) -> list[Transaction]:
    """Report pipeline: receiver equality, then the period window.

    Input order is preserved and the input list is never modified.
    """
    filtered = list(transactions)
    if params.receiver:
        filtered = [tx for tx in filtered if tx.get("receiver") == params.receiver]
    if params.mode != "allTime":
        filtered = [
            tx
            for tx in filtered
            if within_dates(tx.get("date"), params.period.from_date, params.period.to_date)
        ]
    return filtered


def aggregate(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    income = ZERO
    expenses = ZERO
    for tx in transactions:
        category = tx.get("category")
        if category == INCOME:
            income += coerce_amount(tx.get("amount"))
        elif category == EXPENSE:
            expenses += coerce_amount(tx.get("amount"))
    return {"income": income, "expenses": expenses, "balance": income - expenses}


def category_breakdown(transactions: Iterable[Transaction], category: str) -> list[dict[str, Any]]:
    """Totals per subcategory within ``category``, largest first.

    Groups with equal totals keep the order in which they were first seen.
    """
    groups: dict[str, dict[str, Any]] = {}
    for tx in transactions:
        if tx.get("category") != category:
            continue
        subcategory = tx.get("subcategory")
        group = groups.get(subcategory)
        if group is None:
            group = groups[subcategory] = {"subcategory": subcategory, "total": ZERO, "count": 0}
        group["total"] += coerce_amount(tx.get("amount"))
        group["count"] += 1
    return sorted(groups.values(), key=lambda g: g["total"], reverse=True)


def percent_of_total(value: Decimal, grand_total: Decimal) -> float:
    if not grand_total:
        return 0.0
    return float(value / grand_total * 100)


def with_percentages(breakdown: list[dict[str, Any]], grand_total: Decimal) -> list[dict[str, Any]]:
    return [{**row, "percent": percent_of_total(row["total"], grand_total)} for row in breakdown]


def receiver_stats(transactions: Iterable[Transaction]) -> list[dict[str, Any]]:
    """Net position per receiver; an empty receiver is grouped as ``Unassigned``.

    ``deficit`` marks receivers whose expenses exceed the income they received.
    """
    groups: dict[str, list[Transaction]] = {}
    for tx in transactions:
        groups.setdefault(tx.get("receiver") or UNASSIGNED_RECEIVER, []).append(tx)

    stats = []
    for receiver, rows in groups.items():
        totals = aggregate(rows)
        stats.append({"receiver": receiver, **totals, "deficit": totals["balance"] < 0})
    return stats


def percent_change(current: Decimal, previous: Decimal) -> float | None:
    """Relative change against the size of ``previous``.

    A negative baseline keeps its direction: a balance moving from -100 to -50
    is +50.0, not -50.0.
    """
    if not previous:
        return None
    return round(float((current - previous) / abs(previous) * 100), 1)


def build_report(
    transactions: list[Transaction],
    mode: str,
    reference_date: date,
    custom_range: DateRange | None = None,
    receiver: str = "",
) -> dict[str, Any]:
    period = resolve_period(mode, reference_date, custom_range)
    filtered = filter_transactions(transactions, ReportFilter(mode=mode, period=period, receiver=receiver))
    totals = aggregate(filtered)

    comparison = None
    prev_range = previous_period(period)
    if prev_range is not None:
        prev_rows = filter_transactions(
            transactions, ReportFilter(mode="custom", period=prev_range, receiver=receiver)
        )
        prev_totals = aggregate(prev_rows)
        comparison = {
            "range": prev_range.as_dict(),
            "totals": prev_totals,
            "change": {
                key: percent_change(totals[key], prev_totals[key]) for key in ("income", "expenses", "balance")
            },
        }

    return {
        "mode": mode,
        "range": period.as_dict(),
        "receiver": receiver,
        "count": len(filtered),
        "totals": totals,
        "all_time": aggregate(transactions),
        "comparison": comparison,
        "income_breakdown": with_percentages(category_breakdown(filtered, INCOME), totals["income"]),
        "expense_breakdown": with_percentages(category_breakdown(filtered, EXPENSE), totals["expenses"]),
        "receivers": receiver_stats(filtered),
    }

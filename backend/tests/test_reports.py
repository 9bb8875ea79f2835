import copy
import pathlib
import sys
import unittest
from datetime import date
from decimal import Decimal

BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from bookkeeping.services.periods import DateRange
from bookkeeping.services.reports import (
    ReportFilter,
    aggregate,
    build_report,
    category_breakdown,
    coerce_amount,
    filter_transactions,
    percent_change,
    percent_of_total,
    receiver_stats,
)


def tx(date_str, category, subcategory, amount, receiver="R1", sender="S1", remarks=""):
    return {
        "date": date_str,
        "category": category,
        "subcategory": subcategory,
        "sender": sender,
        "receiver": receiver,
        "remarks": remarks,
        "amount": amount,
    }


LEDGER = [
    tx("2024-03-01", "Income", "Donations", 500, receiver="R1"),
    tx("2024-03-15", "Expense", "Utilities", 200, receiver="R1", sender="R1"),
    tx("2024-02-20", "Income", "Grants", 1000, receiver="R2"),
    tx("2024-03-18", "Income", "Student Fees", 300, receiver="R2"),
    tx("2023-03-05", "Income", "Donations", 250, receiver="R1"),
    tx("2023-03-28", "Expense", "Salaries", 400, receiver="R1"),
]


class AmountCoercionTests(unittest.TestCase):
    def test_numeric_inputs(self):
        self.assertEqual(coerce_amount(100), Decimal("100"))
        self.assertEqual(coerce_amount(12.5), Decimal("12.5"))
        self.assertEqual(coerce_amount(Decimal("7.25")), Decimal("7.25"))
        self.assertEqual(coerce_amount(" 42.10 "), Decimal("42.10"))

    def test_defective_inputs_become_zero(self):
        for value in ("abc", None, "", float("nan"), float("inf"), Decimal("NaN"), True, [], {}):
            self.assertEqual(coerce_amount(value), Decimal("0"), value)


class AggregateTests(unittest.TestCase):
    def test_balance_is_income_minus_expenses(self):
        totals = aggregate(LEDGER)
        self.assertEqual(totals["income"], Decimal("2050"))
        self.assertEqual(totals["expenses"], Decimal("600"))
        self.assertEqual(totals["balance"], totals["income"] - totals["expenses"])
        self.assertGreaterEqual(totals["income"], 0)
        self.assertGreaterEqual(totals["expenses"], 0)

    def test_empty_list(self):
        self.assertEqual(aggregate([]), {"income": 0, "expenses": 0, "balance": 0})

    def test_non_numeric_amounts_contribute_nothing(self):
        rows = [
            tx("2024-03-01", "Income", "Donations", "abc"),
            tx("2024-03-02", "Income", "Donations", None),
            tx("2024-03-03", "Expense", "Utilities", float("nan")),
            tx("2024-03-04", "Income", "Grants", "150"),
        ]
        totals = aggregate(rows)
        self.assertEqual(totals, {"income": Decimal("150"), "expenses": Decimal("0"), "balance": Decimal("150")})
        for value in totals.values():
            self.assertTrue(value.is_finite())

    def test_missing_amount_key(self):
        row = tx("2024-03-01", "Income", "Donations", 0)
        del row["amount"]
        self.assertEqual(aggregate([row])["income"], 0)

    def test_unknown_category_is_ignored(self):
        self.assertEqual(aggregate([tx("2024-03-01", "Transfer", "x", 50)])["balance"], 0)


class FilterTests(unittest.TestCase):
    def test_month_filter_keeps_order(self):
        params = ReportFilter(mode="thisMonth", period=DateRange("2024-03-01", "2024-03-31"))
        result = filter_transactions(LEDGER, params)
        self.assertEqual([r["date"] for r in result], ["2024-03-01", "2024-03-15", "2024-03-18"])

    def test_receiver_filter_is_exact(self):
        params = ReportFilter(mode="allTime", receiver="R2")
        self.assertEqual(len(filter_transactions(LEDGER, params)), 2)
        self.assertEqual(filter_transactions(LEDGER, ReportFilter(mode="allTime", receiver="r2")), [])

    def test_all_time_ignores_bounds(self):
        params = ReportFilter(mode="allTime", period=DateRange("2024-03-01", "2024-03-31"))
        self.assertEqual(len(filter_transactions(LEDGER, params)), len(LEDGER))

    def test_half_open_custom_range(self):
        params = ReportFilter(mode="custom", period=DateRange("2024-03-10", ""))
        self.assertEqual([r["date"] for r in filter_transactions(LEDGER, params)], ["2024-03-15", "2024-03-18"])

    def test_filter_is_idempotent(self):
        params = ReportFilter(mode="custom", period=DateRange("2024-01-01", "2024-12-31"), receiver="R1")
        once = filter_transactions(LEDGER, params)
        self.assertEqual(filter_transactions(once, params), once)

    def test_input_is_not_modified(self):
        snapshot = copy.deepcopy(LEDGER)
        filter_transactions(LEDGER, ReportFilter(mode="thisMonth", period=DateRange("2024-03-01", "2024-03-31")))
        receiver_stats([tx("2024-03-01", "Income", "Donations", 1, receiver="")])
        self.assertEqual(LEDGER, snapshot)


class BreakdownTests(unittest.TestCase):
    def test_sorted_by_total_descending(self):
        rows = [
            tx("2024-03-01", "Income", "Donations", 100),
            tx("2024-03-02", "Income", "Grants", 300),
            tx("2024-03-03", "Income", "Donations", 50),
            tx("2024-03-04", "Expense", "Utilities", 999),
        ]
        self.assertEqual(
            category_breakdown(rows, "Income"),
            [
                {"subcategory": "Grants", "total": Decimal("300"), "count": 1},
                {"subcategory": "Donations", "total": Decimal("150"), "count": 2},
            ],
        )

    def test_ties_keep_first_seen_order(self):
        rows = [
            tx("2024-03-01", "Expense", "Salaries", 100),
            tx("2024-03-02", "Expense", "Utilities", 100),
            tx("2024-03-03", "Expense", "Books & Materials", 100),
        ]
        self.assertEqual(
            [row["subcategory"] for row in category_breakdown(rows, "Expense")],
            ["Salaries", "Utilities", "Books & Materials"],
        )

    def test_breakdown_sums_to_category_total(self):
        income = aggregate(LEDGER)["income"]
        self.assertEqual(sum(row["total"] for row in category_breakdown(LEDGER, "Income")), income)

    def test_empty_category(self):
        self.assertEqual(category_breakdown([], "Income"), [])

    def test_percent_of_zero_total(self):
        self.assertEqual(percent_of_total(Decimal("0"), Decimal("0")), 0.0)
        self.assertEqual(percent_of_total(Decimal("25"), Decimal("200")), 12.5)


class ReceiverStatsTests(unittest.TestCase):
    def test_overspent_receiver_is_flagged(self):
        rows = [
            tx("2024-03-01", "Income", "Donations", 100, receiver="A"),
            tx("2024-03-02", "Expense", "Utilities", 150, receiver="A"),
        ]
        self.assertEqual(
            receiver_stats(rows),
            [
                {
                    "receiver": "A",
                    "income": Decimal("100"),
                    "expenses": Decimal("150"),
                    "balance": Decimal("-50"),
                    "deficit": True,
                }
            ],
        )

    def test_surplus_receiver_is_not_flagged(self):
        stats = receiver_stats([tx("2024-03-01", "Income", "Donations", 100, receiver="B")])
        self.assertFalse(stats[0]["deficit"])

    def test_empty_receiver_is_unassigned(self):
        rows = [
            tx("2024-03-01", "Income", "Donations", 100, receiver=""),
            tx("2024-03-01", "Income", "Donations", 40, receiver=None),
        ]
        stats = receiver_stats(rows)
        self.assertEqual(len(stats), 1)
        self.assertEqual(stats[0]["receiver"], "Unassigned")
        self.assertEqual(stats[0]["income"], Decimal("140"))
        self.assertEqual(rows[0]["receiver"], "")


class PercentChangeTests(unittest.TestCase):
    def test_change_against_previous(self):
        self.assertEqual(percent_change(Decimal("150"), Decimal("100")), 50.0)
        self.assertEqual(percent_change(Decimal("50"), Decimal("200")), -75.0)
        self.assertEqual(percent_change(Decimal("1"), Decimal("3")), -66.7)

    def test_no_change_without_baseline(self):
        self.assertIsNone(percent_change(Decimal("150"), Decimal("0")))

    def test_negative_baseline_keeps_direction(self):
        self.assertEqual(percent_change(Decimal("-50"), Decimal("-100")), 50.0)
        self.assertEqual(percent_change(Decimal("-150"), Decimal("-100")), -50.0)
        self.assertEqual(percent_change(Decimal("50"), Decimal("-100")), 150.0)


class BuildReportTests(unittest.TestCase):
    def test_scenario_this_month(self):
        ledger = [
            tx("2024-03-01", "Income", "Donations", 500, sender="S1", receiver="R1"),
            tx("2024-03-15", "Expense", "Utilities", 200, sender="R1", receiver="R1"),
        ]
        report = build_report(ledger, "thisMonth", date(2024, 3, 20))

        self.assertEqual(report["range"], {"from_date": "2024-03-01", "to_date": "2024-03-31"})
        self.assertEqual(report["count"], 2)
        self.assertEqual(report["totals"], {"income": 500, "expenses": 200, "balance": 300})
        self.assertEqual(
            report["income_breakdown"],
            [{"subcategory": "Donations", "total": Decimal("500"), "count": 1, "percent": 100.0}],
        )
        self.assertEqual(report["receivers"][0]["receiver"], "R1")
        self.assertEqual(report["receivers"][0]["balance"], Decimal("300"))

    def test_comparison_uses_same_window_last_year(self):
        report = build_report(LEDGER, "thisMonth", date(2024, 3, 20))
        comparison = report["comparison"]
        self.assertEqual(comparison["range"], {"from_date": "2023-03-01", "to_date": "2023-03-31"})
        self.assertEqual(comparison["totals"]["income"], Decimal("250"))
        self.assertEqual(comparison["totals"]["expenses"], Decimal("400"))
        self.assertEqual(report["totals"]["income"], Decimal("800"))
        self.assertEqual(comparison["change"]["income"], 220.0)
        self.assertEqual(comparison["change"]["expenses"], -50.0)

    def test_comparison_respects_receiver(self):
        report = build_report(LEDGER, "thisMonth", date(2024, 3, 20), receiver="R2")
        self.assertEqual(report["totals"]["income"], Decimal("300"))
        self.assertEqual(report["comparison"]["totals"]["income"], 0)
        self.assertIsNone(report["comparison"]["change"]["income"])

    def test_smaller_deficit_reads_as_improvement(self):
        ledger = [
            tx("2023-03-05", "Expense", "Utilities", 100),
            tx("2024-03-05", "Expense", "Utilities", 50),
        ]
        report = build_report(ledger, "thisMonth", date(2024, 3, 20))
        self.assertEqual(report["totals"]["balance"], Decimal("-50"))
        self.assertEqual(report["comparison"]["totals"]["balance"], Decimal("-100"))
        self.assertEqual(report["comparison"]["change"]["balance"], 50.0)
        self.assertEqual(report["comparison"]["change"]["expenses"], -50.0)

    def test_all_time_has_no_comparison(self):
        report = build_report(LEDGER, "allTime", date(2024, 3, 20))
        self.assertIsNone(report["comparison"])
        self.assertEqual(report["totals"], report["all_time"])

    def test_incomplete_custom_range_has_no_comparison(self):
        report = build_report(LEDGER, "custom", date(2024, 3, 20), DateRange("2024-03-01", ""))
        self.assertIsNone(report["comparison"])
        self.assertEqual(report["count"], 3)

    def test_all_time_totals_ignore_filters(self):
        report = build_report(LEDGER, "thisMonth", date(2024, 3, 20), receiver="R2")
        self.assertEqual(report["all_time"]["income"], Decimal("2050"))


if __name__ == "__main__":
    unittest.main()

"""
Totals and per-category breakdowns over a month's expenses.

Every function here is pure: callers pass expense rows (anything with
``amount``, ``category_id`` and ``category`` attributes) that are already
scoped to one user and one date range.
"""
import math
from collections import defaultdict


def total_expenses(expenses):
    return sum((e.amount for e in expenses), 0)


def remaining(budget, total):
    # negative when over budget
    return budget - total


def calculate_percentage(value, total) -> int:
    if total == 0:
        return 0
    # half rounds up, 12.5 -> 13
    return int(math.floor(value / total * 100 + 0.5))


def category_breakdown(expenses):
    """
    Group expenses by category and return one entry per category:
    ``{"category", "amount", "count", "percentage"}``, largest amount first.
    Equal amounts are ordered by category id.
    """
    total = total_expenses(expenses)

    amounts = defaultdict(float)
    counts = defaultdict(int)
    categories = {}
    for e in expenses:
        amounts[e.category_id] += e.amount
        counts[e.category_id] += 1
        categories.setdefault(e.category_id, e.category)

    ordered = sorted(amounts, key=lambda cid: (-amounts[cid], cid))

    return [
        {
            "category": categories[cid],
            "amount": amounts[cid],
            "count": counts[cid],
            "percentage": calculate_percentage(amounts[cid], total),
        }
        for cid in ordered
    ]

from datetime import date

from models import Budget, Expense
from reporting import (
    previous_month,
    next_month,
    month_bounds,
    can_navigate_next,
    months_back,
    query_expenses,
    get_report,
    get_comparison,
    get_dashboard_stats,
)


def _add_expense(db, user, category, amount, when, description=None):
    expense = Expense(
        user_id=user.id,
        category_id=category.id,
        amount=amount,
        date=when,
        description=description,
    )
    db.add(expense)
    db.commit()
    return expense


def _add_budget(db, user, month, year, amount):
    db.add(Budget(user_id=user.id, month=month, year=year, amount=amount))
    db.commit()


def test_month_rollover():
    assert previous_month(1, 2026) == (12, 2025)
    assert previous_month(7, 2026) == (6, 2026)
    assert next_month(12, 2025) == (1, 2026)
    assert next_month(7, 2026) == (8, 2026)


def test_month_bounds_are_half_open():
    assert month_bounds(2, 2024) == (date(2024, 2, 1), date(2024, 3, 1))
    assert month_bounds(12, 2025) == (date(2025, 12, 1), date(2026, 1, 1))


def test_can_navigate_next_stops_at_current_month():
    today = date(2026, 10, 19)
    assert can_navigate_next(9, 2026, today)
    assert can_navigate_next(12, 2025, today)
    assert not can_navigate_next(10, 2026, today)
    assert not can_navigate_next(11, 2026, today)


def test_months_back_oldest_first_across_year():
    assert months_back(6, date(2026, 2, 15)) == [
        (9, 2025),
        (10, 2025),
        (11, 2025),
        (12, 2025),
        (1, 2026),
        (2, 2026),
    ]
    assert months_back(1, date(2026, 2, 15)) == [(2, 2026)]


def test_first_day_of_next_month_excluded(db, user, categories):
    food = categories["Food"]
    _add_expense(db, user, food, 10, date(2026, 3, 1))
    _add_expense(db, user, food, 20, date(2026, 3, 31))
    _add_expense(db, user, food, 40, date(2026, 4, 1))

    march = get_report(db, user.id, 3, 2026)
    april = get_report(db, user.id, 4, 2026)

    assert march["total_expenses"] == 30
    assert [e.amount for e in march["expenses"]] == [20, 10]
    assert april["total_expenses"] == 40


def test_report_without_budget(db, user, categories):
    _add_expense(db, user, categories["Transport"], 250, date(2026, 5, 10))

    report = get_report(db, user.id, 5, 2026)

    assert report["budget"] == 0
    assert report["total_expenses"] == 250
    assert report["remaining"] == -250


def test_report_scenario(db, user, categories):
    _add_budget(db, user, 6, 2026, 5000)
    _add_expense(db, user, categories["Food"], 1000, date(2026, 6, 2))
    _add_expense(db, user, categories["Food"], 500, date(2026, 6, 20))
    _add_expense(db, user, categories["Transport"], 1500, date(2026, 6, 11))

    report = get_report(db, user.id, 6, 2026)

    assert report["budget"] == 5000
    assert report["total_expenses"] == 3000
    assert report["remaining"] == 2000
    assert {(b["category"].name, b["amount"], b["percentage"]) for b in report["category_breakdown"]} == {
        ("Food", 1500, 50),
        ("Transport", 1500, 50),
    }
    assert [e.date for e in report["expenses"]] == [
        date(2026, 6, 20),
        date(2026, 6, 11),
        date(2026, 6, 2),
    ]


def test_query_expenses_filters(db, user, categories):
    _add_expense(db, user, categories["Food"], 5, date(2026, 1, 3))
    _add_expense(db, user, categories["Sports"], 6, date(2026, 1, 4))
    _add_expense(db, user, categories["Food"], 7, date(2026, 2, 4))

    assert len(query_expenses(db, user.id)) == 3
    assert len(query_expenses(db, user.id, month=1)) == 3
    assert len(query_expenses(db, user.id, month=1, year=2026)) == 2
    assert [e.amount for e in query_expenses(db, user.id, category_id=categories["Food"].id)] == [7, 5]
    assert [e.amount for e in query_expenses(db, user.id, limit=1)] == [7]


def test_comparison(db, user, categories):
    today = date(2026, 2, 15)
    _add_budget(db, user, 12, 2025, 900)
    _add_budget(db, user, 2, 2026, 1000)
    _add_expense(db, user, categories["Food"], 300, date(2025, 12, 31))
    _add_expense(db, user, categories["Food"], 200, date(2026, 2, 1))
    _add_expense(db, user, categories["Other"], 50, date(2026, 2, 14))

    comparison = get_comparison(db, user.id, 6, today)

    assert len(comparison) == 6
    keys = [(c["year"], c["month"]) for c in comparison]
    assert keys == sorted(keys)
    assert keys[-1] == (2026, 2)
    assert comparison[3] == {"month": 12, "year": 2025, "budget": 900, "expenses": 300}
    assert comparison[4] == {"month": 1, "year": 2026, "budget": 0, "expenses": 0}
    assert comparison[5] == {"month": 2, "year": 2026, "budget": 1000, "expenses": 250}


def test_dashboard_keeps_five_recent(db, user, categories):
    today = date(2026, 8, 20)
    _add_budget(db, user, 8, 2026, 2000)
    for day in range(1, 8):
        _add_expense(db, user, categories["Food"], 100, date(2026, 8, day))
    _add_expense(db, user, categories["Food"], 999, date(2026, 7, 31))

    stats = get_dashboard_stats(db, user.id, today)

    assert stats["current_budget"] == 2000
    assert stats["total_expenses"] == 700
    assert stats["remaining"] == 1300
    assert [e.date.day for e in stats["recent_expenses"]] == [7, 6, 5, 4, 3]
    assert stats["category_breakdown"][0]["count"] == 7

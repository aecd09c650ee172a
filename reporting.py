import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from aggregation import total_expenses, remaining, category_breakdown
from models import Budget, Expense

logger = logging.getLogger(__name__)

RECENT_EXPENSES_LIMIT = 5

# month_bounds(12, year) needs January of year + 1 to be a valid date
MAX_QUERY_YEAR = 9998


# -------------------------------
# MONTH ARITHMETIC
# -------------------------------

def current_month(today: Optional[date] = None) -> Tuple[int, int]:
    today = today or date.today()
    return today.month, today.year


def previous_month(month: int, year: int) -> Tuple[int, int]:
    month -= 1
    if month == 0:
        return 12, year - 1
    return month, year


def next_month(month: int, year: int) -> Tuple[int, int]:
    month += 1
    if month == 13:
        return 1, year + 1
    return month, year


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    """Half-open ``[first day, first day of next month)`` for one month."""
    end_month, end_year = next_month(month, year)
    return date(year, month, 1), date(end_year, end_month, 1)


def can_navigate_next(month: int, year: int, today: Optional[date] = None) -> bool:
    """True when the month after ``(month, year)`` is not in the future."""
    cur_month, cur_year = current_month(today)
    target_month, target_year = next_month(month, year)
    return (target_year, target_month) <= (cur_year, cur_month)


def months_back(count: int, today: Optional[date] = None) -> List[Tuple[int, int]]:
    """The ``count`` months ending at the current month, oldest first."""
    month, year = current_month(today)
    periods = []
    for _ in range(count):
        periods.append((month, year))
        month, year = previous_month(month, year)
    periods.reverse()
    return periods


# -------------------------------
# STORE READS
# -------------------------------

def get_budget(db: Session, user_id: int, month: int, year: int) -> Optional[Budget]:
    return db.query(Budget).filter(
        Budget.user_id == user_id,
        Budget.month == month,
        Budget.year == year
    ).first()


def get_budget_amount(db: Session, user_id: int, month: int, year: int) -> float:
    budget = get_budget(db, user_id, month, year)
    return budget.amount if budget else 0


def query_expenses(
    db: Session,
    user_id: int,
    month: Optional[int] = None,
    year: Optional[int] = None,
    category_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Expense]:
    q = db.query(Expense).filter(Expense.user_id == user_id)

    # a month filter needs both halves
    if month and year:
        start, end = month_bounds(month, year)
        q = q.filter(Expense.date >= start, Expense.date < end)

    if category_id:
        q = q.filter(Expense.category_id == category_id)

    q = q.order_by(Expense.date.desc(), Expense.id.desc())
    if limit:
        q = q.limit(limit)

    return q.all()


def get_month_expense_total(db: Session, user_id: int, month: int, year: int) -> float:
    start, end = month_bounds(month, year)
    total = db.query(func.sum(Expense.amount)).filter(
        Expense.user_id == user_id,
        Expense.date >= start,
        Expense.date < end
    ).scalar()
    return total or 0


# -------------------------------
# REPORTS
# -------------------------------

def get_report(db: Session, user_id: int, month: int, year: int) -> dict:
    budget = get_budget_amount(db, user_id, month, year)
    expenses = query_expenses(db, user_id, month, year)
    total = total_expenses(expenses)

    return {
        "month": month,
        "year": year,
        "budget": budget,
        "total_expenses": total,
        "remaining": remaining(budget, total),
        "category_breakdown": category_breakdown(expenses),
        "expenses": expenses,
    }


def get_comparison(db: Session, user_id: int, months: int, today: Optional[date] = None) -> List[dict]:
    comparison = [
        {
            "month": month,
            "year": year,
            "budget": get_budget_amount(db, user_id, month, year),
            "expenses": get_month_expense_total(db, user_id, month, year),
        }
        for month, year in months_back(months, today)
    ]
    logger.debug("Built %d-month comparison for user %s", len(comparison), user_id)
    return comparison


def get_dashboard_stats(db: Session, user_id: int, today: Optional[date] = None) -> dict:
    month, year = current_month(today)
    report = get_report(db, user_id, month, year)

    return {
        "current_budget": report["budget"],
        "total_expenses": report["total_expenses"],
        "remaining": report["remaining"],
        "recent_expenses": report["expenses"][:RECENT_EXPENSES_LIMIT],
        "category_breakdown": report["category_breakdown"],
    }

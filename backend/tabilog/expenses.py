# backend/tabilog/expenses.py
from collections import OrderedDict
from typing import Dict, List

from tabilog.models import Currency, Expense

EXCHANGE_RATE = 0.22  # JPY -> TWD, approximate

CATEGORIES = ('Food', 'Transport', 'Shopping', 'Accommodation')


def to_twd(expense: Expense) -> float:
    if expense.currency == Currency.JPY:
        return expense.amount * EXCHANGE_RATE
    return expense.amount


def to_jpy(expense: Expense) -> float:
    if expense.currency == Currency.TWD:
        return expense.amount / EXCHANGE_RATE
    return expense.amount


def converted_label(expense: Expense) -> str:
    if expense.currency == Currency.JPY:
        return f"NT$ {to_twd(expense):.0f}"
    return f"¥ {to_jpy(expense):.0f}"


def totals(expenses: List[Expense]) -> Dict:
    return {
        'TWD': round(sum(to_twd(e) for e in expenses)),
        'JPY': round(sum(to_jpy(e) for e in expenses)),
        'rate': EXCHANGE_RATE,
    }


def group_by_date(expenses: List[Expense]) -> Dict[str, List[Expense]]:
    grouped = OrderedDict()
    for expense in sorted(expenses, key=lambda e: e.date, reverse=True):
        grouped.setdefault(expense.date, []).append(expense)
    return grouped


def add_expense(expenses: List[Expense], expense: Expense) -> List[Expense]:
    return [expense] + list(expenses)


def delete_expense(expenses: List[Expense], expense_id: str) -> List[Expense]:
    return [e for e in expenses if e.id != expense_id]

# backend/tabilog/exporter.py
import io
from typing import List

from tabilog.expenses import converted_label
from tabilog.models import Day, Expense

BOM = '\ufeff'

ITINERARY_TITLE = '行程規劃 Itinerary'
ITINERARY_HEADER = ['日期', '星期', '地點', '時間', '活動名稱', '類型', '詳細說明', '備註', '預算/花費']

EXPENSES_TITLE = '消費紀錄 Expenses'
EXPENSES_HEADER = ['日期', '項目', '類別', '幣別', '金額', '匯率換算(約)']


def _weekday(display_date: str) -> str:
    if '(' not in display_date:
        return ''
    return display_date.split('(', 1)[1].replace(')', '')


def _amount(value: float) -> str:
    return f"{value:g}"


def _quoted(text) -> str:
    # Free text is always wrapped in double quotes.
    if not text:
        return ''
    return '"' + text.replace('"', '""') + '"'


def _write_row(buffer: io.StringIO, fields: List[str]) -> None:
    buffer.write(','.join(fields) + '\n')


def export_csv(itinerary: List[Day], expenses: List[Expense]) -> str:
    buffer = io.StringIO()
    buffer.write(BOM)
    _write_row(buffer, [ITINERARY_TITLE])
    _write_row(buffer, ITINERARY_HEADER)
    for day in itinerary:
        for activity in day.activities:
            _write_row(buffer, [
                day.date,
                _weekday(day.display_date),
                _quoted(activity.location or day.location),
                _quoted(activity.time),
                _quoted(activity.title),
                activity.type.value,
                _quoted(activity.description),
                _quoted(activity.notes),
                '',
            ])

    buffer.write('\n\n')

    _write_row(buffer, [EXPENSES_TITLE])
    _write_row(buffer, EXPENSES_HEADER)
    for expense in expenses:
        _write_row(buffer, [
            expense.date,
            _quoted(expense.description),
            expense.category,
            expense.currency.value,
            _amount(expense.amount),
            converted_label(expense),
        ])

    return buffer.getvalue()


def export_filename(title: str) -> str:
    return f"{title}_export.csv"

# backend/tabilog/timeparse.py
import re
from typing import Optional

CLOCK_PATTERN = re.compile(r'(\d{1,2})[:：](\d{2})')

PM_MARKERS = ('pm', '下午', '晚上')
AM_MARKERS = ('am', '上午')

# Checked in order; the first bucket with a matching token wins.
# "afternoon" contains "noon", so it has to be tried first.
KEYWORD_HOURS = (
    (('morning', '早上', '上午'), 9),
    (('afternoon', '下午'), 14),
    (('noon', '中午'), 12),
    (('evening', '傍晚'), 18),
    (('night', '晚上'), 21),
)


def _contains_any(text: str, tokens) -> bool:
    return any(token in text for token in tokens)


def parse_hour_from_time(label: Optional[str]) -> Optional[int]:
    """Map a time label such as "2:30pm", "14：00" or "Morning" to an hour 0-23.

    Returns None when the label carries no specific hour ("TBA", "", ...).
    """
    if not label:
        return None

    lower = label.lower()

    match = CLOCK_PATTERN.search(lower)
    if match:
        hour = int(match.group(1))
        if _contains_any(lower, PM_MARKERS) and hour < 12:
            hour += 12
        if _contains_any(lower, AM_MARKERS) and hour == 12:
            hour = 0
        return hour if 0 <= hour <= 23 else None

    for tokens, hour in KEYWORD_HOURS:
        if _contains_any(lower, tokens):
            return hour

    return None

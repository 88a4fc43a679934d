"""
Plain-text day summary, meant to be copied into a message for family or the care team.

Rendering is a pure function of the day aggregate and the user's settings.
Dates are always written in British English ("Friday 15 March") from the
tables below, never through the process locale, so the same input always
produces the same text.
"""
from datetime import date as date_type
from typing import List, Optional

from bedside.models import DayAggregate, Settings

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

MOOD_LEVELS = [
    {"value": 0, "emoji": "😫", "label": "Terrible"},
    {"value": 1, "emoji": "😔", "label": "Not great"},
    {"value": 2, "emoji": "😐", "label": "Okay"},
    {"value": 3, "emoji": "🙂", "label": "Good"},
    {"value": 4, "emoji": "😄", "label": "Great"},
]


def day_number(admission_date: Optional[str], date: str) -> Optional[int]:
    """
    Day of the hospital stay for `date`, the admission day being day 1.
    Dates before admission give 0 or negative numbers; hiding those is up to the caller.
    """
    if not admission_date:
        return None
    delta = date_type.fromisoformat(date) - date_type.fromisoformat(admission_date)
    return delta.days + 1


def format_long_date(date: str) -> str:
    d = date_type.fromisoformat(date)
    return f"{WEEKDAYS[d.weekday()]} {d.day} {MONTHS[d.month - 1]}"


def format_value(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_summary(aggregate: DayAggregate, settings: Settings) -> str:
    lines: List[str] = []

    # Header
    date_str = format_long_date(aggregate.date)
    day_num = day_number(settings.admission_date, aggregate.date)
    if day_num is not None and day_num >= 1:
        lines.append(f"📋 {date_str} — Day {day_num} in hospital")
    else:
        lines.append(f"📋 {date_str}")
    lines.append("")

    # Current state
    lines.append("📊 How I'm doing:")
    if aggregate.mood is not None and 0 <= aggregate.mood < len(MOOD_LEVELS):
        mood = MOOD_LEVELS[aggregate.mood]
        lines.append(f"  Mood: {mood['emoji']} {mood['label']}")

    for metric in sorted(settings.metrics, key=lambda m: m.sort_order):
        value = aggregate.metric_values.get(metric.id, metric.default_value)
        lines.append(f"  {metric.name}: {format_value(value)}/{metric.max_value}")

    if aggregate.notes.strip():
        lines.append("")
        lines.append("💭 Notes:")
        lines.append(f"  {aggregate.notes}")

    if aggregate.events:
        lines.append("")
        lines.append("📝 Today's events:")
        for event in aggregate.events:
            note = f" ({event.note})" if event.note else ""
            lines.append(f"  {event.time} — {event.type}{note}")

    unanswered = [q for q in aggregate.questions if not q.answered]
    if unanswered:
        lines.append("")
        lines.append("❓ Questions for the team:")
        for question in unanswered:
            lines.append(f"  • {question.text}")

    answered = [q for q in aggregate.questions if q.answered]
    if answered:
        lines.append("")
        lines.append("✅ Answered questions:")
        for question in answered:
            lines.append(f"  • {question.text}")

    return "\n".join(lines)

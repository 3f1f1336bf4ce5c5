from datetime import datetime, timedelta
from typing import Dict

NIGHT_BONUS_MULTIPLIER = 0.3  # adicional noturno +30%
NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6


def ensure_end_after_start(start: datetime, end: datetime) -> datetime:
    """Fim igual ou anterior ao início atravessa a meia-noite: empurra o fim para o dia seguinte."""
    if end <= start:
        return end + timedelta(days=1)
    return end


def calculate_night_minutes(start: datetime, end: datetime) -> float:
    total = 0.0
    cursor = start
    while cursor < end:
        day_start = cursor.replace(hour=0, minute=0, second=0, microsecond=0)
        night_start = day_start.replace(hour=NIGHT_START_HOUR)
        night_end = day_start + timedelta(days=1, hours=NIGHT_END_HOUR)

        # madrugada do próprio dia (00:00-06:00) pertence à noite anterior
        early_end = day_start.replace(hour=NIGHT_END_HOUR)
        for window_start, window_end in ((day_start, early_end), (night_start, night_end)):
            interval_start = max(cursor, window_start)
            interval_end = min(end, window_end)
            if interval_end > interval_start:
                total += (interval_end - interval_start).total_seconds() / 60

        cursor = night_end
    return total


def calculate_overtime_value(
    start: datetime,
    end: datetime,
    hourly_rate: float,
    overtime_percentage: float,
) -> Dict[str, float]:
    end = ensure_end_after_start(start, end)
    total_minutes = (end - start).total_seconds() / 60
    night_minutes = calculate_night_minutes(start, end)

    hours = total_minutes / 60
    night_hours = night_minutes / 60
    base_value = hours * hourly_rate * (1 + overtime_percentage)
    night_extra = night_hours * hourly_rate * NIGHT_BONUS_MULTIPLIER

    return {
        "total_minutes": total_minutes,
        "night_minutes": night_minutes,
        "base_value": round(base_value, 2),
        "night_extra": round(night_extra, 2),
        "total_value": round(base_value + night_extra, 2),
    }

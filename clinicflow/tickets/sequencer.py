from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo


class Sequencer:
    """Compute and format the daily ticket numbers (``G001``, ``G002``...).

    Numbers restart every calendar day. The day is the issuance timestamp's
    date in the clinic's time zone. Values above the padding width keep their
    natural width, so the 1000th ticket of a day is ``G1000``.
    """

    def __init__(self, *, prefix: str = "G", width: int = 3, tz: tzinfo = timezone.utc) -> None:
        self.prefix = prefix
        self.width = width
        self.tz = tz

    def business_day(self, moment: datetime) -> date:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz).date()

    @staticmethod
    def next_value(count_today: int) -> int:
        return count_today + 1

    def format_number(self, value: int) -> str:
        if value < 1:
            raise ValueError(f"Ticket sequence values start at 1, got {value}")
        return f"{self.prefix}{value:0{self.width}d}"

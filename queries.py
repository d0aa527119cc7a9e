"""
Booking list filtering shared by the listing and the report export,
plus name suggestions for the booking form.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence

from models import Booking, BookingCategory, Client, Colleague

ALL = "All"


@dataclass
class BookingFilter:
    category: str = ALL
    status: str = ALL
    search_text: str = ""

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "BookingFilter":
        """Build from query-string style arguments; blanks mean no filter."""
        return cls(
            category=(args.get("category") or ALL).strip(),
            status=(args.get("status") or ALL).strip(),
            search_text=(args.get("search") or "").strip(),
        )

    def matches(self, booking: Booking) -> bool:
        if self.category != ALL and booking.category.value != self.category:
            return False
        if self.status != ALL and booking.status.value != self.status:
            return False
        needle = self.search_text.lower()
        return (
            needle in booking.pnr.lower()
            or needle in booking.client_name.lower()
            or needle in booking.route.lower()
        )

    def apply(self, bookings: Iterable[Booking]) -> List[Booking]:
        return [b for b in bookings if self.matches(b)]


def filter_bookings(
    bookings: Iterable[Booking],
    category: str = ALL,
    status: str = ALL,
    search_text: str = "",
) -> List[Booking]:
    """Category AND status AND text match; input order is kept."""
    return BookingFilter(category, status, search_text).apply(bookings)


def suggest_counterparts(
    category: Any,
    text: str,
    clients: Sequence[Client],
    colleagues: Sequence[Colleague],
    limit: int = 10,
) -> List[str]:
    """
    Names to offer while typing a booking's client name.
    Only an input aid: bookings keep the free-text name they are given.
    """
    if str(getattr(category, "value", category)) == BookingCategory.COLLEAGUE.value:
        names = [c.name for c in colleagues]
    else:
        names = [c.name for c in clients]

    needle = (text or "").strip().lower()
    seen = set()
    suggestions = []
    for name in names:
        key = name.lower()
        if needle in key and key not in seen:
            seen.add(key)
            suggestions.append(name)
        if len(suggestions) >= limit:
            break
    return suggestions

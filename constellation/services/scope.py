"""Date-window scoping of the thoughts fed into one analysis."""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Union

from constellation.models.thought import DateWindow, Thought
from constellation.services.errors import ConstellationInputError

_WINDOW_DAYS = {
    DateWindow.TODAY: 0,
    DateWindow.THREE_DAYS: 3,
    DateWindow.SEVEN_DAYS: 7,
    DateWindow.THIRTY_DAYS: 30,
}


def window_cutoff(window: DateWindow, reference: Optional[datetime] = None) -> Optional[datetime]:
    """Midnight of ``reference`` minus the window length; ``None`` for the unbounded window."""
    if window is DateWindow.ALL:
        return None
    reference = reference or datetime.now()
    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=_WINDOW_DAYS[window])


def filter_by_window(
    thoughts: Sequence[Thought],
    window: Union[DateWindow, str] = DateWindow.ALL,
    reference: Optional[datetime] = None,
) -> List[Thought]:
    """
    Keep thoughts whose document date is on or after the window cutoff.

    Thoughts without a document date only survive the unbounded window.
    """
    try:
        window = DateWindow(window)
    except ValueError as exc:
        raise ConstellationInputError(f"Unknown date window: {window!r}") from exc

    cutoff = window_cutoff(window, reference)
    if cutoff is None:
        return list(thoughts)

    kept: List[Thought] = []
    for thought in thoughts:
        if thought.document_date is None:
            continue
        document_date = thought.document_date
        # Compare naive to naive and aware to aware
        if (document_date.tzinfo is None) != (cutoff.tzinfo is None):
            if cutoff.tzinfo is None:
                document_date = document_date.replace(tzinfo=None)
            else:
                document_date = document_date.replace(tzinfo=cutoff.tzinfo)
        if document_date >= cutoff:
            kept.append(thought)
    return kept

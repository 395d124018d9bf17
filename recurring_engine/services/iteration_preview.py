"""Read-only preview of upcoming iterations of a recurring series."""
from datetime import date
from typing import List, Optional

from recurring_engine.config import PREVIEW_MAX_COUNT
from recurring_engine.models.task import Task
from recurring_engine.services.clock import Clock, get_clock
from recurring_engine.services.occurrence_calculator import next_n_occurrences
from recurring_engine.services.series_linkage import SeriesLinkage, is_instance
from recurring_engine.utils.metrics import metrics_collector


class IterationPreviewService:
    """Shows the next dates of a series without touching any state."""

    def __init__(self, linkage: SeriesLinkage, clock: Optional[Clock] = None):
        self.linkage = linkage
        self.clock = clock or get_clock()

    def preview_next(self, task: Task, count: int, start_from: Optional[date] = None,
                     align_to_anchor: bool = False) -> List[date]:
        """
        Upcoming occurrence dates for a template or any of its instances.

        Dates run forward from start_from (today when omitted), or from the
        viewed occurrence's due date when that lies further ahead; the
        template's due date stands in for an instance without one. With
        align_to_anchor the dates stay on that due date's own grid. Only
        dates after start_from are returned and a template without
        recurrence yields [].

        Raises:
            AmbiguousParent: If an instance's template cannot be resolved
        """
        template = self.linkage.resolve_template(task)
        # Frozen snapshot, so a concurrent edit can never be seen half-applied
        rule = template.recurrence_rule
        if not rule.is_recurring or count <= 0:
            return []

        today = self.clock.today()
        anchor = task.due_date if is_instance(task) and task.due_date else template.due_date
        if anchor is None:
            anchor = start_from or today

        metrics_collector.preview_served()
        return next_n_occurrences(
            rule,
            anchor,
            min(count, PREVIEW_MAX_COUNT),
            start_from=start_from,
            today=today,
            align_to_anchor=align_to_anchor,
        )

"""Query & stats aggregation for the staff dashboard."""
from dataclasses import dataclass
from typing import Dict, List, Optional

from mediq import config
from mediq.errors import InvalidStatus
from mediq.logging_config import get_logger
from mediq.records import AppointmentRecord
from mediq.state import AppointmentStatus
from mediq.store import AppointmentStore

logger = get_logger(__name__)

ALL_STATUSES = "all"


@dataclass(frozen=True)
class QueueStats:
    pending: int
    in_progress: int
    completed: int
    cancelled: int
    total: int
    average_wait_time: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "pending": self.pending,
            "inProgress": self.in_progress,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "total": self.total,
            "averageWaitTime": self.average_wait_time,
        }


@dataclass(frozen=True)
class AppointmentListing:
    appointments: List[AppointmentRecord]
    stats: QueueStats


def compute_stats(appointments: List[AppointmentRecord]) -> QueueStats:
    """Count statuses over exactly the given appointments."""
    counts = {status: 0 for status in AppointmentStatus}
    for appointment in appointments:
        counts[appointment.status] += 1

    return QueueStats(
        pending=counts[AppointmentStatus.PENDING],
        in_progress=counts[AppointmentStatus.IN_PROGRESS],
        completed=counts[AppointmentStatus.COMPLETED],
        cancelled=counts[AppointmentStatus.CANCELLED],
        total=len(appointments),
        average_wait_time=config.AVERAGE_WAIT_TIME_MINUTES,
    )


class QueryAggregator:
    """
    Filtered listings with stats computed over the same filtered set.

    Unknown status filters are treated as "all" unless strict_status is set,
    in which case they raise InvalidStatus. Lenient is the default so
    existing dashboards that send other values keep working.
    """

    def __init__(self, store: AppointmentStore, strict_status: bool = config.STRICT_STATUS_FILTER):
        self.store = store
        self.strict_status = strict_status

    def _status_filter(self, status: Optional[str]) -> Optional[AppointmentStatus]:
        if status is None or status == "" or status == ALL_STATUSES:
            return None
        try:
            return AppointmentStatus(status)
        except ValueError:
            allowed = [ALL_STATUSES] + [s.value for s in AppointmentStatus]
            if self.strict_status:
                raise InvalidStatus(status, allowed) from None
            logger.warning("unknown_status_filter_ignored", status=status)
            return None

    def list(self, status: Optional[str] = None, search: Optional[str] = None) -> AppointmentListing:
        """
        List appointments matching the filter.

        Args:
            status: One of the four statuses, "all", or None
            search: Matches patient name or phone (case-insensitive
                    substring) or an exact queue number

        Returns:
            AppointmentListing ordered by slot start then queue number
        """
        status_filter = self._status_filter(status)
        term = search.strip() if search else None

        appointments = self.store.query_filtered(status=status_filter, search=term or None)
        return AppointmentListing(appointments=appointments, stats=compute_stats(appointments))

"""FastAPI dependency injection functions."""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from mediq import config
from mediq.booking import BookingService
from mediq.database import create_store_engine, init_database
from mediq.lifecycle import LifecycleStateMachine
from mediq.messaging import NotificationChannel, StatusMessenger, channel_from_config
from mediq.notifier import ChangeNotifier
from mediq.queries import QueryAggregator
from mediq.sequencer import QueueSequencer
from mediq.store import AppointmentStore


@dataclass
class ClinicServices:
    """Everything a request handler needs, wired around one store."""
    store: AppointmentStore
    notifier: ChangeNotifier
    booking: BookingService
    lifecycle: LifecycleStateMachine
    queries: QueryAggregator
    channel: Optional[NotificationChannel] = None
    executor: Optional[ThreadPoolExecutor] = field(default=None, repr=False)

    def close(self):
        if self.executor is not None:
            self.executor.shutdown(wait=True)
        self.store.engine.dispose()


def build_services(
    database_url: str = config.DATABASE_URL,
    channel: Optional[NotificationChannel] = None,
    strict_status_filter: bool = config.STRICT_STATUS_FILTER,
) -> ClinicServices:
    """
    Create store, notifier and the engine components on top of them.

    Tables are created if missing. When a notification channel is given,
    patients are messaged on every status change from a single background
    worker.
    """
    engine = create_store_engine(database_url)
    init_database(engine)

    store = AppointmentStore(engine)
    notifier = ChangeNotifier()

    executor = None
    if channel is not None:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mediq-messaging")
        notifier.subscribe(StatusMessenger(store, channel, executor))

    return ClinicServices(
        store=store,
        notifier=notifier,
        booking=BookingService(QueueSequencer(store), notifier),
        lifecycle=LifecycleStateMachine(store, notifier),
        queries=QueryAggregator(store, strict_status=strict_status_filter),
        channel=channel,
        executor=executor,
    )


@lru_cache(maxsize=1)
def get_services() -> ClinicServices:
    """
    Get process-wide services (cached singleton).

    Pattern: Create once, reuse across requests. Tests override this
    dependency with services bound to a temporary database.
    """
    return build_services(channel=channel_from_config())


def get_booking_service(services: ClinicServices = Depends(get_services)) -> BookingService:
    return services.booking


def get_lifecycle(services: ClinicServices = Depends(get_services)) -> LifecycleStateMachine:
    return services.lifecycle


def get_queries(services: ClinicServices = Depends(get_services)) -> QueryAggregator:
    return services.queries


def get_store(services: ClinicServices = Depends(get_services)) -> AppointmentStore:
    return services.store

"""Server-Sent Events streaming of appointment events."""
import asyncio
import json
from typing import AsyncGenerator, Optional

from mediq.notifier import ChangeNotifier, EventStream


async def stream_appointment_events(
    notifier: ChangeNotifier,
    heartbeat_seconds: float = 15.0,
    max_events: Optional[int] = None,
) -> AsyncGenerator[str, None]:
    """
    Stream notifier events as Server-Sent Events.

    Each event is one `data: {json}` frame; idle periods produce comment
    frames so proxies keep the connection open. Clients should re-query
    GET /appointments on each event rather than trust the payload alone.

    Args:
        notifier: Change notifier to subscribe to
        heartbeat_seconds: Idle interval before a keep-alive comment
        max_events: Stop after this many events (None streams forever)

    Yields:
        SSE-formatted strings: "data: {json}\n\n"
    """
    stream = EventStream(asyncio.get_running_loop())
    notifier.subscribe(stream)
    sent = 0

    try:
        yield ": connected\n\n"

        while max_events is None or sent < max_events:
            try:
                event = await asyncio.wait_for(stream.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue

            yield f"data: {json.dumps(event.to_dict())}\n\n"
            sent += 1
    finally:
        notifier.unsubscribe(stream)

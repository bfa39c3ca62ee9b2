"""
Delivery counters and gauges, exported in Prometheus text format at /metrics.

Names are registered without the `catnotify_` prefix; unknown names are still
accepted so a new counter only needs an `inc()` call, but the registered ones
carry a HELP line and are always exported, even at zero.
"""

from __future__ import annotations

import time
from collections import defaultdict

PREFIX = "catnotify_"

COUNTERS = {
    "subscriptions_added_total": "Subscribe calls accepted",
    "subscriptions_removed_total": "Unsubscribe calls accepted",
    "events_received_total": "Topic and reply events handled",
    "dispatch_skipped_total": "Dispatches skipped for an empty or unreadable audience",
    "notifications_pushed_total": "Notifications pushed to an audience",
    "notifications_abandoned_total": "Notifications the forum failed to create",
    "emails_sent_total": "Emails delivered to the forum mailer",
    "emails_failed_total": "Emails the forum mailer rejected",
    "ticketing_posts_total": "Topics mirrored to the ticketing endpoint",
    "ticketing_errors_total": "Failed ticketing posts",
}

GAUGES = {
    "background_tasks": "Dispatches currently running in the background",
}


class MetricsCollector:
    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get(self, name: str) -> int | float:
        if name in self._gauges:
            return self._gauges[name]
        return self._counters.get(name, 0)

    def to_prometheus(self) -> str:
        lines: list[str] = []
        counters = {name: 0 for name in COUNTERS} | dict(self._counters)
        for name, value in sorted(counters.items()):
            lines.extend(_sample(name, "counter", value, COUNTERS.get(name)))

        gauges = {name: 0 for name in GAUGES} | self._gauges
        gauges["uptime_seconds"] = round(time.time() - self._start_time, 1)
        for name, value in sorted(gauges.items()):
            lines.extend(_sample(name, "gauge", value, GAUGES.get(name)))
        return "\n".join(lines) + "\n"


def _sample(name: str, kind: str, value: int | float, help_text: str | None) -> list[str]:
    full = f"{PREFIX}{name}"
    lines = [f"# HELP {full} {help_text}"] if help_text else []
    lines.append(f"# TYPE {full} {kind}")
    lines.append(f"{full} {value}")
    return lines

from __future__ import annotations

from prometheus_client import Counter


class _EndpointMetrics:
    def __init__(self) -> None:
        self.attempts_total = Counter(
            "fault_tolerance_endpoint_attempts_total",
            "Underlying queue calls started by decorated endpoints",
            ["client", "endpoint"],
        )
        self.failures_total = Counter(
            "fault_tolerance_endpoint_failures_total",
            "Underlying queue calls that raised",
            ["client", "endpoint"],
        )
        self.outcomes_total = Counter(
            "fault_tolerance_endpoint_outcomes_total",
            "Terminal outcome of decorated operations",
            ["client", "endpoint", "outcome"],
        )

    def inc_attempt(self, client: str, endpoint: str) -> None:
        self.attempts_total.labels(client=client, endpoint=endpoint).inc()

    def inc_failure(self, client: str, endpoint: str) -> None:
        self.failures_total.labels(client=client, endpoint=endpoint).inc()

    def inc_outcome(self, client: str, endpoint: str, outcome: str) -> None:
        self.outcomes_total.labels(
            client=client, endpoint=endpoint, outcome=outcome
        ).inc()


endpoint_metrics = _EndpointMetrics()

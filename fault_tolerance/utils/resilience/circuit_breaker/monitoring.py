"""
Prometheus metrics of the default circuit breaker.

One breaker usually guards several decorated endpoints (every client under the
shared scope), so metrics are labelled by circuit name only; the registry and
health snapshot map circuits back to endpoint keys.
"""

from __future__ import annotations

from prometheus_client import Counter, Enum, Gauge

CIRCUIT_STATES = ["closed", "open", "half_open"]
REPORT_OUTCOMES = ("success", "failure", "blocked")

CIRCUIT_STATE = Enum(
    "fault_tolerance_circuit_state",
    "Current state of each circuit",
    ["circuit"],
    states=CIRCUIT_STATES,
)
CIRCUIT_REPORTS = Counter(
    "fault_tolerance_circuit_reports_total",
    "Outcomes reported to a circuit, plus calls it blocked",
    ["circuit", "outcome"],
)
CIRCUIT_TRANSITIONS = Counter(
    "fault_tolerance_circuit_transitions_total",
    "State changes of each circuit",
    ["circuit", "from_state", "to_state"],
)
HALF_OPEN_IN_FLIGHT = Gauge(
    "fault_tolerance_circuit_half_open_in_flight",
    "Trial calls currently holding a half-open slot",
    ["circuit"],
)


class CircuitMetrics:
    """Label-bound metric children for one named circuit."""

    def __init__(self, circuit: str) -> None:
        self.circuit = circuit
        self._state = CIRCUIT_STATE.labels(circuit=circuit)
        self._reports = {
            outcome: CIRCUIT_REPORTS.labels(circuit=circuit, outcome=outcome)
            for outcome in REPORT_OUTCOMES
        }
        self._in_flight = HALF_OPEN_IN_FLIGHT.labels(circuit=circuit)
        self._state.state("closed")
        self._in_flight.set(0)

    def report(self, outcome: str) -> None:
        self._reports[outcome].inc()

    def transition(self, from_state: str, to_state: str) -> None:
        self._state.state(to_state)
        CIRCUIT_TRANSITIONS.labels(
            circuit=self.circuit, from_state=from_state, to_state=to_state
        ).inc()

    def trial_calls(self, in_flight: int) -> None:
        self._in_flight.set(in_flight)

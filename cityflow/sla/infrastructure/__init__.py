"""
SLA Infrastructure Layer
=========================

- External: escalation webhook client, circuit breaker, scheduler
"""

from cityflow.sla.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    EscalationNotifier,
    SLAScheduler,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "EscalationNotifier",
    "SLAScheduler",
]

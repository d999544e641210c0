"""
Prometheus metrics for the vault program.

A dedicated ``CollectorRegistry`` is used by default so several programs (and
tests) can coexist in one process without duplicate-metric errors.
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class VaultMetrics:
    """Counters and gauges describing vault activity."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.instructions_total = Counter(
            "kuza_vault_instructions_total",
            "Vault instructions processed",
            ["operation", "outcome"],
            registry=self.registry,
        )
        self.fees_collected_total = Counter(
            "kuza_vault_fees_collected_total",
            "Native fees paid to the fee recipient",
            ["kind"],
            registry=self.registry,
        )
        self.tokens_locked = Gauge(
            "kuza_vault_tokens_locked",
            "Asset units currently held across all vaults",
            registry=self.registry,
        )

    def record_success(self, operation: str) -> None:
        self.instructions_total.labels(operation=operation, outcome="success").inc()

    def record_failure(self, operation: str, code: str) -> None:
        self.instructions_total.labels(operation=operation, outcome=code).inc()

    def record_fee(self, kind: str, amount: int) -> None:
        if amount > 0:
            self.fees_collected_total.labels(kind=kind).inc(amount)

    def record_locked_delta(self, delta: int) -> None:
        if delta > 0:
            self.tokens_locked.inc(delta)
        elif delta < 0:
            self.tokens_locked.dec(-delta)

    def export(self) -> bytes:
        return generate_latest(self.registry)

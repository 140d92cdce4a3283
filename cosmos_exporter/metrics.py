from typing import Dict, Iterable, Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from cosmos_exporter import settings
from cosmos_exporter.models import EnrichedValidator, UpgradePlan, ValidatorsSnapshot

CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsContext:
    """Registry and gauges owned by a single request, so nothing is shared between requests."""

    def __init__(self, const_labels: Optional[Dict[str, str]] = None) -> None:
        self.registry = CollectorRegistry()
        self.const_labels = dict(settings.CONST_LABELS if const_labels is None else const_labels)

    def gauge(self, name: str, documentation: str, labelnames: Iterable[str]) -> Gauge:
        return Gauge(name, documentation, [*self.const_labels, *labelnames], registry=self.registry)

    def set(self, gauge: Gauge, value: float, **labels: str) -> None:
        gauge.labels(**self.const_labels, **labels).set(value)

    def render(self) -> bytes:
        return generate_latest(self.registry)


class ValidatorsMetrics(MetricsContext):
    def __init__(self, denom: Optional[str] = None, const_labels: Optional[Dict[str, str]] = None) -> None:
        super().__init__(const_labels)
        self.denom = denom or settings.DENOM
        self.commission = self.gauge(
            'cosmos_validators_commission',
            'Commission of the Cosmos-based blockchain validator',
            ['address', 'moniker'],
        )
        self.status = self.gauge(
            'cosmos_validators_status',
            'Status of the Cosmos-based blockchain validator',
            ['address', 'moniker'],
        )
        self.jailed = self.gauge(
            'cosmos_validators_jailed',
            'Jailed status of the Cosmos-based blockchain validator',
            ['address', 'moniker'],
        )
        self.tokens = self.gauge(
            'cosmos_validators_tokens',
            'Tokens of the Cosmos-based blockchain validator',
            ['address', 'moniker', 'denom'],
        )
        self.delegator_shares = self.gauge(
            'cosmos_validators_delegator_shares',
            'Delegator shares of the Cosmos-based blockchain validator',
            ['address', 'moniker', 'denom'],
        )
        self.min_self_delegation = self.gauge(
            'cosmos_validators_min_self_delegation',
            'Self declared minimum self delegation shares of the Cosmos-based blockchain validator',
            ['address', 'moniker', 'denom'],
        )
        self.missed_blocks = self.gauge(
            'cosmos_validators_missed_blocks',
            'Missed blocks of the Cosmos-based blockchain validator',
            ['address', 'moniker'],
        )
        self.rank = self.gauge(
            'cosmos_validators_rank',
            'Rank of the Cosmos-based blockchain validator',
            ['address', 'moniker'],
        )
        self.active = self.gauge(
            'cosmos_validators_active',
            '1 if the Cosmos-based blockchain validator is in active set, 0 if no',
            ['address', 'pubkey_hash', 'moniker'],
        )

    def observe(self, record: EnrichedValidator) -> None:
        labels = {'address': record.operator_address, 'moniker': record.moniker}
        if record.commission_rate is not None:
            self.set(self.commission, record.commission_rate, **labels)
        self.set(self.status, int(record.status), **labels)
        self.set(self.jailed, 1 if record.jailed else 0, **labels)
        if record.tokens is not None:
            self.set(self.tokens, record.tokens, denom=self.denom, **labels)
        if record.delegator_shares is not None:
            self.set(self.delegator_shares, record.delegator_shares, denom=self.denom, **labels)
        if record.min_self_delegation is not None:
            self.set(self.min_self_delegation, record.min_self_delegation, denom=self.denom, **labels)
        if record.missed_blocks is not None:
            self.set(self.missed_blocks, record.missed_blocks, **labels)
        self.set(self.rank, record.rank, **labels)
        if record.active is not None:
            self.set(self.active, 1 if record.active else 0, pubkey_hash=record.pubkey_hash, **labels)

    def observe_snapshot(self, snapshot: ValidatorsSnapshot) -> None:
        for record in snapshot.validators:
            self.observe(record)


class DelegatorMetrics(MetricsContext):
    def __init__(self, const_labels: Optional[Dict[str, str]] = None) -> None:
        super().__init__(const_labels)
        self.delegator_total = self.gauge(
            'cosmos_validator_delegator_total',
            'Number of delegators in validator',
            ['validator_address'],
        )

    def observe(self, validator_address: str, total: int) -> None:
        self.set(self.delegator_total, total, validator_address=validator_address)


class UpgradeMetrics(MetricsContext):
    def __init__(self, const_labels: Optional[Dict[str, str]] = None) -> None:
        super().__init__(const_labels)
        self.upgrade_plan = self.gauge(
            'cosmos_upgrade_plan',
            'Upgrade plan info in height',
            ['info', 'name', 'height', 'estimated_time'],
        )

    def observe_no_plan(self) -> None:
        self.set(self.upgrade_plan, 0, info='None', name='None', height='', estimated_time='')

    def observe_plan(self, plan: UpgradePlan, remaining_height: int, estimated_time: str) -> None:
        self.set(self.upgrade_plan, remaining_height, info=plan.info, name=plan.name,
                 height=str(plan.height), estimated_time=estimated_time)

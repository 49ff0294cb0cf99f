# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Metrics:
- Epoch index, lifetime distributed, total staked
- Claims per auth method, rewards paid, rebates paid
- Vesting releases, unstake withdrawals, slashes
- Reverted operations per error code
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# LEDGER GAUGES
# ═══════════════════════════════════════════════════════════════════

epoch_index = Gauge(
    'orderflow_epoch_index',
    'Current epoch index',
    registry=metrics_registry
)

lifetime_distributed = Gauge(
    'orderflow_lifetime_distributed',
    'Total rewards, rebates and distributions paid out (minimal units)',
    registry=metrics_registry
)

total_staked = Gauge(
    'orderflow_total_staked',
    'Total staked balance across accounts',
    registry=metrics_registry
)

accounts_total = Gauge(
    'orderflow_accounts_total',
    'Number of account records',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# EVENT COUNTERS
# ═══════════════════════════════════════════════════════════════════

claims_total = Counter(
    'orderflow_claims_total',
    'Successful claims',
    ['method'],
    registry=metrics_registry
)

rewards_paid_total = Counter(
    'orderflow_rewards_paid_total',
    'Rewards distributed through claims (immediate + vesting)',
    registry=metrics_registry
)

rebates_paid_total = Counter(
    'orderflow_rebates_paid_total',
    'Execution-cost rebates paid',
    registry=metrics_registry
)

vested_released_total = Counter(
    'orderflow_vested_released_total',
    'Vested rewards released',
    registry=metrics_registry
)

unstake_withdrawn_total = Counter(
    'orderflow_unstake_withdrawn_total',
    'Unstaked tokens withdrawn after cooldown',
    registry=metrics_registry
)

slashed_total = Counter(
    'orderflow_slashed_total',
    'Bond amounts slashed',
    registry=metrics_registry
)

epochs_advanced_total = Counter(
    'orderflow_epochs_advanced_total',
    'Epoch rollovers observed',
    registry=metrics_registry
)

operations_failed_total = Counter(
    'orderflow_operations_failed_total',
    'Reverted operations',
    ['error'],
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def _on_reward_claimed(method: str, reward: int, **_):
    claims_total.labels(method=method).inc()
    rewards_paid_total.inc(reward)


def _on_merkle_claimed(amount: int, **_):
    claims_total.labels(method="MERKLE_BATCH").inc()


def register_event_metrics(event_bus):
    """
    Wire counters to ledger events.

    Args:
        event_bus: EventBus the ledger publishes to
    """
    event_bus.subscribe('reward_claimed', _on_reward_claimed)
    event_bus.subscribe('merkle_claimed', _on_merkle_claimed)
    event_bus.subscribe('rebate_paid', lambda amount, **_: rebates_paid_total.inc(amount))
    event_bus.subscribe('vested_claimed', lambda amount, **_: vested_released_total.inc(amount))
    event_bus.subscribe('unstake_withdrawn', lambda amount, **_: unstake_withdrawn_total.inc(amount))
    event_bus.subscribe('slashed', lambda amount, **_: slashed_total.inc(amount))
    event_bus.subscribe('epoch_advanced', lambda **_: epochs_advanced_total.inc())
    event_bus.subscribe('operation_failed', lambda error, **_: operations_failed_total.labels(error=error).inc())


def update_metrics(ledger):
    """
    Refresh gauges from ledger state. Called when metrics are scraped.

    Args:
        ledger: RewardLedger instance
    """
    accounts = ledger.state.get_all_accounts()
    epoch_index.set(ledger.current_epoch)
    lifetime_distributed.set(ledger.lifetime_distributed)
    total_staked.set(ledger.state.total_staked())
    accounts_total.set(len(accounts))

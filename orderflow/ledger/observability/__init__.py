# MIT License
# Copyright (c) 2025 Hashborn

"""
Observability Module

Prometheus metrics for the reward ledger.
"""

from .metrics import metrics_registry, register_event_metrics, update_metrics

__all__ = ['metrics_registry', 'register_event_metrics', 'update_metrics']

# src/synapse_ops/api/__init__.py
"""Read-only dashboard API over the monitoring JSON files and the quota ledger."""

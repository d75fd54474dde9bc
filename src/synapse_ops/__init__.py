"""
synapse-ops

Walkthrough commands and supporting library code for storage operations on
Filecoin through the Synapse SDK:
  - ledger: SQLite quota ledger (users / payments / uploads)
  - payments: payment-path routing for hybrid sponsorship
  - alerts: rule evaluation, deduplication and notification sinks
  - monitoring: Beam CDN metrics and cost tracking
  - sdk: typed boundary around the external Synapse client
  - walkthroughs: one-shot CLI commands
  - api: read-only monitoring dashboard
"""

from __future__ import annotations

__version__ = "0.1.0"

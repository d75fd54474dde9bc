# src/synapse_ops/testing/__init__.py
"""Test helpers (in-memory SDK double). Not used by the live walkthroughs."""

from __future__ import annotations

from synapse_ops.testing.fake_synapse import FakeContext, FakeSynapse, FakeState, fake_piece_cid

__all__ = ["FakeContext", "FakeState", "FakeSynapse", "fake_piece_cid"]

"""Synchronization engine: scopes, strategies, orchestrator and scheduler."""

"""Autonomous operations - scheduled sweeps and the periodic orchestrator."""

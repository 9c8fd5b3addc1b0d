"""Monitoring engine: change detection, dedup ledger, checks and scheduler.

Import submodules directly (``profile_monitor.monitor.scheduler``); the
notifications package depends on ``monitor.ledger`` and ``monitor.changes``.
"""

"""
Polling subsystem.

Components:
- poll_models.py: data structures (PollTask, PollOptions, PollStatus, PollPriority)
- poll_scheduler.py: visibility-aware scheduler with per-task backoff
- push_poller.py: WebSocket-backed push variant with reconnect
- backoff.py: shared exponential backoff formula
- poll_api.py: small helpers for migrating plain intervals
"""

"""
Core building blocks shared by the scheduler and the render gate.

Components:
- ports.py: Protocols for the hosting environment (elements, widgets, loaders)
- signals.py: tab visibility / window focus signal source
- errors.py: exception hierarchy
"""

"""
Deferred chart rendering.

Components:
- widget_models.py: DeferredWidget, WidgetStatus, GateMetrics
- render_gate.py: defers chart init until the container is in view
"""

"""
Gym admin dashboard runtime.

Subpackages:
- core: host environment ports, signals and error types
- polling: visibility-aware poll scheduler (+ WebSocket push variant)
- charts: deferred chart rendering gated on viewport intersection
- dashboard: concrete pollers for the admin backend
- cli / connectors: composition root and console shell
"""

# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets such as the admin API token. Keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "GYMADMIN_APP_NAME": "App display name (default: gymadmin).",
    "GYMADMIN_LOG_LEVEL": "Logging level (default: INFO).",
    "GYMADMIN_DATA_DIR": "Local data directory for logs (default: .local/gymadmin).",
    # Connectors
    "GYMADMIN_CONSOLE_ENABLED": "Enable the interactive console (true/false).",
    # Admin backend
    "GYMADMIN_API_BASE_URL": "Backend base URL (default: http://localhost:5000).",
    "GYMADMIN_API_TOKEN": "Admin bearer token (optional; sent as Authorization header).",
    "GYMADMIN_HTTP_TIMEOUT_SECONDS": "Per-request timeout (default: 10).",
    # Poll scheduler
    "GYMADMIN_POLL_INTERVAL_SECONDS": "Cash validation poll interval (default: 10).",
    "GYMADMIN_POLL_MAX_RETRIES": "Consecutive failures before a task is stopped (default: 3).",
    "GYMADMIN_POLL_BACKOFF_MULTIPLIER": "Interval multiplier per failure (default: 1.5).",
    "GYMADMIN_POLL_MAX_INTERVAL_SECONDS": "Upper bound for backed-off intervals (default: 300).",
    # Push transport
    "GYMADMIN_PUSH_URL": "Optional WebSocket URL for pushed dashboard updates.",
    "GYMADMIN_PUSH_MAX_RECONNECTS": "Reconnect attempts before giving up (default: 5).",
    # Deferred charts
    "GYMADMIN_CHART_THRESHOLD": "Visible fraction that triggers a chart render (default: 0.1).",
    "GYMADMIN_CHART_ROOT_MARGIN": "Pre-load margin around the viewport in px (default: 50).",
    "GYMADMIN_CHART_FALLBACK_DELAY_SECONDS": (
        "Render delay when intersection observation is unavailable (default: 0.1)."
    ),
}

# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep the Firebase API key in .env (gitignored).
"""

ENV_VARS = {
    # App / logging
    "DIGITEAM_APP_NAME": "App display name (default: digiteam).",
    "DIGITEAM_LOG_LEVEL": "Console logging level (default: INFO).",
    # Backend
    "DIGITEAM_BACKEND": "memory | sqlite | firebase (default: sqlite).",
    "DIGITEAM_POLL_INTERVAL_SECONDS": "How often live views re-read the store (default: 2.0).",
    # Paths (gitignored)
    "DIGITEAM_DATA_DIR": "Local data directory, also holds digiteam.log (default: .local/digiteam).",
    "DIGITEAM_STORE_DB_PATH": "SQLite store path (default: <data_dir>/portal.sqlite3).",
    # Firebase
    "DIGITEAM_FIREBASE_API_KEY": "Web API key (required for the firebase backend).",
    "DIGITEAM_FIREBASE_PROJECT_ID": "Project id (required for the firebase backend).",
    "DIGITEAM_HTTP_TIMEOUT_SECONDS": "HTTP timeout for the REST calls (default: 15).",
    # Board tuning
    "DIGITEAM_DUE_SOON_LIMIT": "How many tasks the due-soon panel shows (default: 5).",
    "DIGITEAM_UPCOMING_EVENTS_LIMIT": "How many events the events panel shows (default: 5).",
}

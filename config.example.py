# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file),
see src/tact/config.py. Put local values in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TACT_APP_NAME": "App display name (default: tact).",
    "TACT_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Local data
    "TACT_DATA_DIR": "Base directory for local data and tact.log (default: .local/tact).",
    "TACT_DB_PATH": "SQLite database path (default: <data_dir>/tact.sqlite3).",
    "TACT_FALLBACK_PATH": "JSON fallback store path (default: <data_dir>/tact.json).",
    # Storage / sync
    "TACT_STORAGE_BACKEND": "auto | json | memory (default: auto = SQLite, falling back to JSON).",
    "TACT_SYNC_ENABLED": "Broadcast refresh signals to other instances (true/false, default: true).",
    "TACT_SYNC_CHANNEL": "file | local | off (default: file).",
    "TACT_SYNC_DIR": "Shared directory for file signals (default: <data_dir>/sync).",
    # Lifecycle / day close
    "TACT_WIP_LIMIT": "Max in-progress tasks per day, clamped to 1..5 (default: 2).",
    "TACT_ROLLOVER_THRESHOLD": "Rollover count that triggers an escalation (default: 3).",
    "TACT_AVAILABLE_HOURS": "Hours available per day for the time-budget alert (default: 6).",
    # Summary
    "TACT_SUMMARY_MARKDOWN": "Render the day summary as markdown (true/false, default: true).",
    "TACT_SUMMARY_WITH_TIMES": "Include completion times in the summary (true/false, default: true).",
}

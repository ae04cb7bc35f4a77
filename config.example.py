# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKBOT_APP_NAME": "App display name (default: taskbot).",
    "TASKBOT_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "TASKBOT_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    "TASKBOT_MATRIX_ENABLED": "Enable Matrix connector (true/false, default: false).",
    # LLM (OpenAI-compatible)
    "TASKBOT_OPENAI_API_KEY": "API key (falls back to OPENAI_API_KEY). Without it summaries find no tasks.",
    "TASKBOT_OPENAI_BASE_URL": "API base URL (default: https://api.openai.com/v1).",
    "TASKBOT_LLM_MODELS": "Comma/space separated list of models to try in order (default: gpt-4o gpt-4o-mini).",
    "TASKBOT_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    "TASKBOT_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 45).",
    "TASKBOT_EXTRACTION_TIMEOUT_SECONDS": "Upper bound for one task extraction call (default: 60).",
    # Matrix
    "TASKBOT_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKBOT_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TASKBOT_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKBOT_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    # Paths (gitignored)
    "TASKBOT_DATA_DIR": "Local data directory (default: .local/taskbot). Logs go to <data_dir>/taskbot.log.",
    "TASKBOT_MATRIX_STORE_PATH": "Matrix session/E2EE store path (default: <data_dir>/matrix_store).",
    "TASKBOT_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKBOT_PERMISSIONS_DB_PATH": "PermissionStore SQLite path (default: <data_dir>/permissions.sqlite3).",
    # Overdue reminders
    "TASKBOT_OVERDUE_SWEEP_HOUR": "Local hour after which the daily sweep runs (default: 9).",
    "TASKBOT_OVERDUE_SWEEP_WEEKDAYS": "Days the sweep runs, e.g. 'mon-fri' or '0,2,4' (default: mon-fri).",
    "TASKBOT_OVERDUE_POLL_SECONDS": "How often the scheduler checks the clock (default: 60).",
    # Behaviour
    "TASKBOT_EXPLICIT_START_DENIAL": "Reply to unauthorized 開始會議 instead of staying silent (default: false).",
    # Console identity
    "TASKBOT_CONSOLE_USER_ID": "User id the console speaks as at startup (default: console).",
    "TASKBOT_CONSOLE_USER_NAME": "Display name the console speaks as at startup (default: Console).",
}

"""Application-wide constants."""

APP_TITLE = "quocli"

# Shown wherever a sensitive value would otherwise appear.
MASK = "***"

DEFAULT_TTL_DAYS = 30
DEFAULT_VALUES_TTL_DAYS = 30

# In-progress markers older than this are considered abandoned.
DEFAULT_CLAIM_TIMEOUT_SECONDS = 300.0
DEFAULT_POLL_INTERVAL_SECONDS = 0.25

HELP_TIMEOUT_SECONDS = 15

TABLE_COLUMNS = ("", "Field", "Value", "Description")

# Offline demo commands, used by `quocli --demo` and by the test suite.
DEMO_HELP: dict[str, str] = {
    "curl": """\
Usage: curl [options...] <url>
 -X, --request <method>   Specify request method to use
 -H, --header <header>    Pass custom header(s) to server
 -u, --user <user:pass>   Server user and password
 -o, --output <file>      Write to file instead of stdout
 -m, --max-time <secs>    Maximum time allowed for transfer
 -L, --location           Follow redirects
 -s, --silent             Silent mode
""",
    "rm": """\
Usage: rm [OPTION]... [FILE]...
Remove (unlink) the FILE(s).
  -f, --force           ignore nonexistent files and arguments, never prompt
  -r, --recursive       remove directories and their contents recursively
Note that if you use rm to remove a file, it might be possible to recover
some of its contents. Removed files cannot be undone without backups.
""",
}

DEMO_SPECS: dict[str, dict] = {
    "curl": {
        "identity": ["curl"],
        "description": "transfer a URL",
        "fields": [
            {"name": "url", "kind": "string", "required": True, "positional": True,
             "help": "URL to fetch"},
            {"name": "request", "kind": "enum", "flag": "-X",
             "choices": ["GET", "POST", "PUT", "DELETE"], "help": "Request method"},
            {"name": "header", "kind": "string", "flag": "-H", "help": "Custom header"},
            {"name": "user", "kind": "password", "flag": "-u",
             "help": "Server user and password"},
            {"name": "output", "kind": "path", "flag": "-o", "help": "Write to file"},
            {"name": "max-time", "kind": "numeric", "help": "Maximum transfer time (seconds)"},
            {"name": "location", "kind": "flag", "flag": "-L", "help": "Follow redirects"},
            {"name": "silent", "kind": "flag", "flag": "-s", "help": "Silent mode"},
        ],
    },
    "rm": {
        "identity": ["rm"],
        "description": "remove files or directories",
        "danger_level": "high",
        "fields": [
            {"name": "file", "kind": "path", "required": True, "positional": True,
             "help": "File to remove"},
            {"name": "force", "kind": "flag", "flag": "-f", "help": "Never prompt"},
            {"name": "recursive", "kind": "flag", "flag": "-r",
             "help": "Remove directories recursively"},
        ],
    },
}

HELP_TEXT = """\
 Navigation
 ──────────────────────────────
 j / ↓ / Tab        Next field
 k / ↑ / Shift+Tab  Previous field
 g / G              First / last field

 Edit
 ──────────────────────────────
 Enter / i          Edit value · toggle flag · cycle choice
 ctrl+x             Clear all values

 Run
 ──────────────────────────────
 ctrl+e             Execute command
 ctrl+p             Preview command

 General
 ──────────────────────────────
 ?                  Toggle this help
 q / Escape         Cancel\
"""

"""Constants for devshare."""

# Lock timing (seconds)
LOCK_TIMEOUT = 30
LOCK_RETRY_INTERVAL = 1.0
STALE_LOCK_SECONDS = 300  # 5 minutes

# Server timing (seconds)
START_TIMEOUT = 30.0
HEALTH_INTERVAL = 0.5
PROBE_TIMEOUT = 3.0

# Stop timing (seconds)
TERMINATE_GRACE_PERIOD = 10.0
KILL_WAIT_SECONDS = 2.0  # Wait for exit after the forceful signal
STOP_WAIT_TIMEOUT = 60.0
STOP_WAIT_POLL = 5.0

# State directory layout
STATE_DIR_ENV = "DEVSHARE_STATE_DIR"
CONFIG_FILE = "devshare.toml"
LOCK_FILE = "lock.json"
USERS_FILE = "users.json"
SERVER_FILE = "server.json"
STOP_REQUEST_FILE = "stop-request.json"

# CLI exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOT_RUNNING = 1
EXIT_STUCK = 2

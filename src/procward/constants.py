"""Application-wide constants for procward.

Constants that define supervisor behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Instance identifiers
    "MASTER_INSTANCE_ID",
    "CLUSTER_INSTANCE_IDS",
    # PID files
    "DEFAULT_PID_FILENAME",
    "PID_FILE_GLOB",
    "PID_FILE_PLACEHOLDER",
    # Signals
    "DEFAULT_KILL_SIGNAL",
    "GRACEFUL_SIGNAL",
    # Interactive console
    "INTERRUPT_GRACE_SECONDS",
    # Cluster
    "WORKER_STOP_TIMEOUT_SECONDS",
    # Defaults
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_LOG_DIR",
]

from platformdirs import user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "procward"

# ============================================================================
# Instance Identifiers
# ============================================================================

# Instance id of the master process in cluster mode.
MASTER_INSTANCE_ID: str = "main"

# Reserved targets that address the whole cluster.
CLUSTER_INSTANCE_IDS: frozenset[str] = frozenset({"main", "master", "all"})

# ============================================================================
# PID Files
# ============================================================================

# Placeholder substituted with the instance id in PID file templates.
PID_FILE_PLACEHOLDER: str = "%s"

# Default PID file name inside the log directory.
DEFAULT_PID_FILENAME: str = "server.%s.pid"

# Glob matching every default PID file.
PID_FILE_GLOB: str = "server.*.pid"

# ============================================================================
# Signals
# ============================================================================

# Signal sent by `procward kill` when none is given.
DEFAULT_KILL_SIGNAL: str = "INT"

# Signal a cluster master answers by reaping its workers, so `kill all`
# with it only needs to reach the master.
GRACEFUL_SIGNAL: str = "INT"

# ============================================================================
# Interactive Console
# ============================================================================

# Pause after the first interrupt before the console opens (seconds).
# A second interrupt inside this window quits the process.
INTERRUPT_GRACE_SECONDS: float = 1.5

# ============================================================================
# Cluster
# ============================================================================

# How long the master waits for workers after SIGTERM (seconds).
WORKER_STOP_TIMEOUT_SECONDS: float = 10.0

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 4000

# Platform-specific log directory:
# - macOS: ~/Library/Logs/procward
# - Linux: ~/.local/state/procward/log
# - Windows: %LOCALAPPDATA%\procward\Logs
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

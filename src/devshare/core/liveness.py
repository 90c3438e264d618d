"""Process liveness checks.

A matching live pid is taken as proof of liveness. PID reuse after the
original process exited can make a dead owner look alive; that risk is
accepted.
"""

import psutil


def is_pid_alive(pid: int) -> bool:
    """Return True if pid refers to a running, non-zombie process."""
    if pid <= 0:
        return False
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.ZombieProcess):
        return False
    except psutil.AccessDenied:
        # Exists but belongs to someone else.
        return True

#!/usr/bin/env python3
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

import psutil


def read_pid(pid_file: Path) -> Optional[int]:
    """Return the PID stored in ``pid_file``, if it holds one."""
    try:
        return int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None


def is_process_running(pid: Optional[int]) -> bool:
    """Check whether a process is alive on any supported platform."""
    if pid is None:
        return False

    try:
        process = psutil.Process(pid)
        return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return False


def kill_process(pid: int, timeout: float = 5.0) -> bool:
    """Terminate a process tree, killing whatever outlives the grace period."""
    if not is_process_running(pid):
        return True

    try:
        process = psutil.Process(pid)
        procs = process.children(recursive=True) + [process]
    except (psutil.NoSuchProcess, psutil.ZombieProcess):
        return True
    except psutil.AccessDenied:
        return False

    for proc in procs:
        try:
            proc.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    _, still_alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in still_alive:
        try:
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    return not is_process_running(pid)


def create_detached_process(cmd: List[str], log_file, *, cwd=None, env=None) -> subprocess.Popen:
    """Start ``cmd`` detached from the console, writing output to ``log_file``."""
    kwargs = {}
    if sys.platform == "win32":
        kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
    else:
        kwargs['start_new_session'] = True

    try:
        return subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=log_file,
            stderr=log_file,
            stdin=subprocess.DEVNULL,
            **kwargs
        )
    except OSError as e:
        raise RuntimeError(f"Failed to create detached process: {e}") from e

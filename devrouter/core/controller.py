#!/usr/bin/env python3
"""Background process controller for the dev server."""
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from ..config.config_manager import ServerSettings
from ..utils.platform_helper import (
    create_detached_process,
    is_process_running,
    kill_process,
    read_pid,
)


class ServiceController:
    """Start, stop and inspect a detached ``devrouter serve`` process."""

    def __init__(self, run_dir: Optional[Path] = None, startup_wait: float = 1.0):
        """
        Initialise the service controller.

        Args:
            run_dir: Directory holding the PID and log files
            startup_wait: Seconds to wait before checking a freshly started process
        """
        self.run_dir = Path(run_dir) if run_dir else Path.home() / '.devrouter/run'
        self.pid_file = self.run_dir / 'dev_server.pid'
        self.log_file = self.run_dir / 'dev_server.log'
        self.startup_wait = startup_wait

    def get_pid(self) -> Optional[int]:
        return read_pid(self.pid_file)

    def is_running(self) -> bool:
        return is_process_running(self.get_pid())

    def build_command(self, settings: ServerSettings) -> List[str]:
        cmd = [
            sys.executable, '-m', 'devrouter.main', 'serve',
            '--host', settings.host,
            '--port', str(settings.port),
            '--root', str(Path(settings.root).resolve()),
            '--log-level', settings.log_level,
        ]
        if settings.build_server:
            cmd.extend(['--build-server', settings.build_server])
        return cmd

    def start(self, settings: ServerSettings) -> bool:
        """Start the dev server in the background."""
        if self.is_running():
            print("Dev server is already running")
            return False

        self.run_dir.mkdir(parents=True, exist_ok=True)
        with open(self.log_file, 'a') as log_handle:
            # Detached so console signals do not reach it
            process = create_detached_process(
                self.build_command(settings),
                log_handle,
                cwd=os.getcwd(),
                env=os.environ.copy(),
            )

        self.pid_file.write_text(str(process.pid))

        # Give uvicorn time to bind or fail
        time.sleep(self.startup_wait)

        if self.is_running():
            print(f"Dev server started (http://{settings.host}:{settings.port})")
            return True

        print(f"Failed to start dev server, see {self.log_file}")
        self._clear_pid_file()
        return False

    def stop(self) -> bool:
        """Stop the background dev server."""
        pid = self.get_pid()
        if not is_process_running(pid):
            print("Dev server is not running")
            self._clear_pid_file()
            return False

        stopped = kill_process(pid)
        self._clear_pid_file()
        if stopped:
            print("Dev server stopped")
        else:
            print("Failed to stop dev server")
        return stopped

    def restart(self, settings: ServerSettings) -> bool:
        self.stop()
        time.sleep(self.startup_wait)
        return self.start(settings)

    def status(self) -> bool:
        """Print the service status to stdout."""
        if self.is_running():
            print(f"Dev server: running (PID: {self.get_pid()}, log: {self.log_file})")
            return True
        print("Dev server: stopped")
        return False

    def _clear_pid_file(self):
        if self.pid_file.exists():
            self.pid_file.unlink()


controller = ServiceController()

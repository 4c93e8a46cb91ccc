"""
app.py

Wires discovery, the streaming workers and the dashboard into one run.

One-shot (default):
    discover once -> stream every container to its end -> print the summary.
Follow (--follow):
    discover once, then keep polling for new pods (ALL / BY_LABELS) while all
    streams stay open, until Ctrl+C; then print the summary.

The summary of logs saved so far is printed in every case, also when the run
ends with an error. The first fatal error (listing in one-shot mode, file
I/O at any time) is raised from run() after the summary.
"""

import logging
from typing import Callable, Optional

from rich.console import Console

from .context import AppContext
from .dashboard import Dashboard, print_summary
from .discovery import DiscoveryLoop, PodSelector, resolve_mode
from .workers import StreamingWorkerPool

log = logging.getLogger("klogs.app")

WAIT_POLL_SECONDS = 0.25


class KlogsApp:
    def __init__(
        self,
        ctx: AppContext,
        console: Optional[Console] = None,
        context_name: str = "",
        select: Optional[PodSelector] = None,
        show_dashboard: bool = True,
    ):
        self.ctx = ctx
        self.console = console or Console()
        self.discovery = DiscoveryLoop(ctx, resolve_mode(ctx.settings), select)
        self.workers = StreamingWorkerPool(ctx)
        self.dashboard = Dashboard(ctx, self.console, context_name) if show_dashboard else None

    def run(self) -> None:
        try:
            if self.ctx.settings.follow:
                self._run_follow()
            else:
                self._run_once()
        except KeyboardInterrupt:
            log.info("[app] Interrupted, shutting down")
        finally:
            self._shutdown()
            print_summary(self.console, self.ctx.sink, self.ctx.notices)

        if self.ctx.fatal_error is not None:
            raise self.ctx.fatal_error

    def _start(self) -> None:
        self.workers.start()
        if self.dashboard is not None:
            self.dashboard.start()

    def _run_once(self) -> None:
        # Listing (and an interactive pick) happens before the dashboard takes the screen.
        pods = self.discovery.list_candidates()
        self._start()
        if self.discovery.admit(pods) == 0:
            log.warning(f"[app] No running pods to collect logs from in namespace {self.ctx.namespace}")
        self.workers.stop()
        self._wait_until(lambda: self.workers.join(WAIT_POLL_SECONDS))
        self._wait_until(lambda: self.ctx.tasks.wait(WAIT_POLL_SECONDS))

    def _run_follow(self) -> None:
        try:
            pods = self.discovery.list_candidates()
        except Exception as e:
            if not self.discovery.polls:
                raise
            log.warning(f"[app] Listing pods failed, retrying on the next check: {e}")
            pods = []

        self._start()
        self.discovery.admit(pods)
        if self.discovery.polls:
            self.discovery.start()
        while not self.ctx.stopping.wait(WAIT_POLL_SECONDS):
            pass

    def _wait_until(self, done: Callable[[], bool]) -> None:
        while not done():
            if self.ctx.fatal_error is not None:
                return

    def _shutdown(self) -> None:
        self.ctx.stopping.set()
        if self.dashboard is not None:
            self.dashboard.stop()
        self.ctx.sink.close()

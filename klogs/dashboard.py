"""
dashboard.py

Terminal dashboard for a running klogs session.

Layout:
- header:  context and namespace
- left:    tree of monitored pods, colored by freshness stage, with their containers
- right:   table of log files and their current size
- footer:  the latest banner notification

The two panes are refreshed by independent timers. The status refresher
ticks the monitoring registry (advancing freshness, evicting TERMINATED pods);
the size refresher only stats the log files.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional

from rich import box
from rich.console import Console, RenderableType
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .context import AppContext
from .notices import Notices
from .registry import MonitoredPod, Stage
from .sink import LogFileSize, LogSink, format_size

log = logging.getLogger("klogs.dashboard")

STAGE_STYLES = {
    Stage.NEW: "yellow",
    Stage.FRESH: "green",
    Stage.STALE: "blue",
    Stage.TERMINATED: "red",
}
SPINNER_FRAMES = [" .🚀", " ..🚀", " ...🚀"]
STATUS_PANE_WIDTH = 60


# =========================
# Renderers
# =========================

def render_status(pods: List[MonitoredPod], frame: int = 0, now: Optional[datetime] = None) -> RenderableType:
    """Tree of monitored pods, sorted as given."""
    if not pods:
        return Text("No pods being monitored", style="red")

    stamp = (now or datetime.now()).strftime("%H:%M:%S")
    tree = Tree(Text(f"[{stamp}] Monitoring{SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]}", style="green"))
    for pod in pods:
        node = tree.add(Text(pod.name, style=STAGE_STYLES[pod.stage]))
        for container in pod.containers:
            node.add(Text(container))
    return tree


def _add_size_rows(table: Table, rows: List[LogFileSize]) -> None:
    # Consecutive rows of the same pod only show the pod name dimmed.
    previous_pod = None
    for row in rows:
        pod_style = "dim" if row.pod == previous_pod else ""
        size_style = "red" if row.size == 0 else ""
        table.add_row(
            Text(row.pod, style=pod_style),
            Text(row.container),
            Text(format_size(row.size), style=size_style),
        )
        previous_pod = row.pod


def render_sizes(rows: List[LogFileSize]) -> RenderableType:
    if not rows:
        return Text("No logs saved", style="red")

    table = Table(box=None, show_edge=False, header_style="bold blue")
    table.add_column("Pod")
    table.add_column("Container")
    table.add_column("Size", justify="right")
    _add_size_rows(table, rows)
    return table


def render_summary(rows: List[LogFileSize]) -> Table:
    """Boxed table printed once the run is over."""
    table = Table(box=box.ROUNDED, header_style="bold")
    table.add_column("Pod")
    table.add_column("Container")
    table.add_column("Size", justify="right")
    _add_size_rows(table, rows)
    return table


def render_header(context_name: str, namespace: str, follow: bool) -> Text:
    header = Text()
    header.append("Context: ", style="bold cyan")
    header.append(context_name)
    header.append(" - Namespace: ", style="bold cyan")
    header.append(namespace)
    if follow:
        header.append(" - Press Ctrl+C to stop", style="dim")
    else:
        header.append(" - Waiting for log streams to end", style="dim")
    return header


def print_summary(console: Console, sink: LogSink, notices: Notices) -> None:
    rows = sink.sizes()
    if rows:
        console.print(Text.assemble("Logs saved to ", (str(sink.root), "green")))
        console.print(render_summary(rows))
    else:
        console.print(Text("No logs saved", style="red"))

    items = notices.items()
    if items:
        console.print("Please note:")
        for line in items:
            console.print(Text(line, style="yellow"))


# =========================
# Refresh loops
# =========================

class PeriodicRefresher:
    """Runs a callback now and then every `interval` seconds until stopped."""

    def __init__(self, name: str, interval: float, callback: Callable[[], None], stop_event: threading.Event):
        self.name = name
        self.interval = interval
        self.callback = callback
        self.stop_event = stop_event
        self._thread: Optional[threading.Thread] = None

    def run(self) -> None:
        while True:
            try:
                self.callback()
            except Exception as e:
                log.warning(f"[dashboard] {self.name} refresh failed: {e}")
            if self.stop_event.wait(self.interval):
                return

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name=f"refresh-{self.name}", daemon=True)
        self._thread.start()
        return self._thread


class Dashboard:
    def __init__(self, ctx: AppContext, console: Console, context_name: str):
        self.ctx = ctx
        self.console = console
        self._frame = 0
        self._stop = threading.Event()
        self._live: Optional[Live] = None

        self.layout = Layout()
        self.layout.split_column(
            Layout(name="header", size=1),
            Layout(name="body"),
            Layout(name="footer", size=1),
        )
        self.layout["body"].split_row(
            Layout(name="status", size=STATUS_PANE_WIDTH),
            Layout(name="sizes"),
        )
        self.layout["header"].update(render_header(context_name, ctx.namespace, ctx.settings.follow))
        self.layout["status"].update(self._pane(render_status([]), " Monitored Pods "))
        self.layout["sizes"].update(self._pane(render_sizes([]), " Logs "))
        self.layout["footer"].update(Text(""))

        self.status_refresher = PeriodicRefresher(
            "status", ctx.settings.status_refresh_interval, self.refresh_status, self._stop
        )
        self.size_refresher = PeriodicRefresher(
            "sizes", ctx.settings.size_refresh_interval, self.refresh_sizes, self._stop
        )

    @staticmethod
    def _pane(body: RenderableType, title: str) -> Panel:
        return Panel(body, title=title, title_align="center", border_style="green")

    def refresh_status(self) -> None:
        pods = self.ctx.registry.tick()
        self.layout["status"].update(self._pane(render_status(pods, self._frame), " Monitored Pods "))
        self._frame += 1
        banner = self.ctx.banner.current()
        self.layout["footer"].update(Text(banner or "", justify="center"))

    def refresh_sizes(self) -> None:
        self.layout["sizes"].update(self._pane(render_sizes(self.ctx.sink.sizes()), " Logs "))

    def start(self) -> None:
        self._live = Live(self.layout, console=self.console, refresh_per_second=4, screen=True)
        self._live.start()
        self.status_refresher.start()
        self.size_refresher.start()

    def stop(self) -> None:
        self._stop.set()
        if self._live is not None:
            self._live.stop()
            self._live = None

"""
Command-line interface for klogs.

Examples:
    # pick pods interactively in the current namespace
    klogs

    # every pod in a namespace, last 100 lines of each container
    klogs -n prod --all --tail 100

    # pods by label, keep streaming and pick up new pods as they start
    klogs -n prod -l app=api -l app=worker --follow

Exit codes: 0 on success (also when no logs were found), 2 on configuration
errors, 1 on API or file errors.
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from . import __version__
from .app import KlogsApp
from .context import AppContext
from .exceptions import ConfigurationError, ListingError, LogSinkError
from .kube import KubeClient
from .prompts import select_namespace
from .settings import KlogsSettings

LOG_FORMAT = "%(message)s"

log = logging.getLogger("klogs")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        "klogs",
        description="Save the logs of Kubernetes pods to disk, optionally following new pods as they start",
    )
    p.add_argument("--kubeconfig", default=None, help="Path to the kubeconfig file (default: ~/.kube/config)")
    p.add_argument("-n", "--namespace", default=None, help="Namespace (default: namespace of the current context)")
    p.add_argument("-l", "--label", dest="labels", action="append", default=None,
                   help="Label selector, e.g. app=api (repeatable)")
    p.add_argument("-a", "--all", dest="all_pods", action="store_true", default=None,
                   help="Collect logs of all pods in the namespace")
    p.add_argument("-t", "--tail", type=int, default=None, help="Only the last N lines of each container (-1: all)")
    p.add_argument("-s", "--since", default=None, help="Only logs newer than a duration, e.g. 10s, 5m, 1h30m")
    p.add_argument("-f", "--follow", action="store_true", default=None,
                   help="Keep streaming logs and watch for new pods")
    p.add_argument("-i", "--init-containers", dest="init_containers", action="store_true", default=None,
                   help="Also collect init container logs")
    p.add_argument("-p", "--logpath", dest="log_path", default=None,
                   help="Directory to save logs to (default: logs/<timestamp>)")
    p.add_argument("-v", "--version", action="version", version=f"klogs {__version__}")
    return p


def settings_from_args(args: argparse.Namespace) -> KlogsSettings:
    """Environment settings overridden by the flags that were given."""
    overrides: Dict[str, Any] = {}
    for name in ("kubeconfig", "namespace", "labels", "all_pods", "tail", "since",
                 "follow", "init_containers", "log_path"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    return KlogsSettings(**overrides)


def splash(console: Console) -> None:
    title = Text.assemble(("K", "bold blue"), ("Logs", "bold white"))
    console.print(Panel(title, subtitle=f"Version: {__version__}", expand=False))


def resolve_namespace(client: KubeClient, namespace: Optional[str], console: Console) -> str:
    """Use the given (or current-context) namespace; let the user pick one if it does not exist."""
    ns = namespace or client.current_namespace()
    if not client.namespace_exists(ns):
        console.print(Text(f"Namespace {ns} not found", style="yellow"))
        ns = select_namespace(client.list_namespaces())
    console.print(Text.assemble("Using Context ", (client.current_context(), "green")))
    console.print(Text.assemble("Using Namespace ", (ns, "green")))
    return ns


def configure_logging(level: str, console: Console) -> None:
    """Route log records through the console the dashboard draws on."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()

    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        console.print(f"Configuration error: {e}", style="red", markup=False)
        sys.exit(2)

    configure_logging(settings.log_level, console)
    splash(console)

    try:
        client = KubeClient.from_kubeconfig(settings.kubeconfig)
        namespace = resolve_namespace(client, settings.namespace, console)
    except ConfigurationError as e:
        console.print(f"Configuration error: {e}", style="red", markup=False)
        sys.exit(2)
    except ListingError as e:
        console.print(f"Error: {e}", style="red", markup=False)
        sys.exit(1)

    ctx = AppContext.create(settings, client, namespace, settings.resolved_log_path())
    app = KlogsApp(ctx, console, context_name=client.current_context())
    try:
        app.run()
    except (ListingError, LogSinkError) as e:
        console.print(f"Error: {e}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()

"""Interactive pickers for the namespace and the pods to collect logs from."""

from typing import List

from InquirerPy import inquirer
from InquirerPy.base.control import Choice

from .kube import PodInfo

MAX_PROMPT_HEIGHT = 15


def select_namespace(namespaces: List[str]) -> str:
    return inquirer.select(
        message="Select a Namespace",
        choices=sorted(namespaces),
        max_height=MAX_PROMPT_HEIGHT,
    ).execute()


def select_pods(pods: List[PodInfo]) -> List[PodInfo]:
    """Multi-select over pod names; space toggles, enter confirms."""
    by_name = {p.name: p for p in pods}
    selected = inquirer.checkbox(
        message="Select Pods to get logs",
        choices=[Choice(value=name, name=name) for name in sorted(by_name)],
        cycle=True,
        max_height=MAX_PROMPT_HEIGHT,
    ).execute()
    return [by_name[name] for name in selected]

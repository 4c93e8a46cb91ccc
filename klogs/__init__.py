"""
klogs - save the logs of Kubernetes pods to disk.

Discovers running pods in a namespace (all of them, by label selector or
picked interactively), streams every container's logs into its own file and,
in follow mode, keeps watching for new pods while a terminal dashboard shows
what is being monitored and how large each log file has grown.
"""

__all__ = ["__version__"]
__version__ = "1.2.0"

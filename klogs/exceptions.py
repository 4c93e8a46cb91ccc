"""
Exceptions raised by klogs.

- KlogsError: base class
  - ConfigurationError: the kubeconfig cannot be loaded
  - ListingError: namespace or pod enumeration failed
  - StreamError: a container's log stream could not be opened
  - LogSinkError: a log file could not be created, written or flushed
"""


class KlogsError(Exception):
    """Base exception for klogs errors."""
    pass


class ConfigurationError(KlogsError):
    """Raised when the configuration cannot be used."""
    pass


class ListingError(KlogsError):
    """Raised when namespaces or pods cannot be listed."""
    pass


class StreamError(KlogsError):
    """Raised when a container log stream cannot be acquired."""
    pass


class LogSinkError(KlogsError):
    """Raised on any file I/O failure while persisting logs."""
    pass

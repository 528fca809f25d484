class WatcherError(Exception):
    """Base class for every error raised by the watcher core."""


class ParseError(WatcherError):
    """The raw query could not be parsed; no job is created."""


class RejectedQueryError(WatcherError):
    """The query parsed but cannot be scheduled (e.g. no keywords)."""


class FetchError(WatcherError):
    pass


class TransientFetchError(FetchError):
    """Timeout or upstream 502. Retried at the same page offset."""


class FatalFetchError(FetchError):
    """Any other bad status or decode failure. Aborts the current sweep."""


class StoreError(WatcherError):
    pass

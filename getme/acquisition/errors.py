"""Acquisition exceptions.

Two families: ``AcquisitionError`` for outcomes a run absorbs (nothing
found for a query) and ``AcquisitionInvariantError`` for programming errors
that must propagate.
"""


class AcquisitionError(Exception):
    """Base exception for recoverable acquisition failures."""

    pass


class NoTorrentsFoundError(AcquisitionError):
    """No torrent survived filtering for a query."""

    def __init__(self, query: str):
        super().__init__(f"No torrents found for {query}")
        self.query = query


class AcquisitionInvariantError(Exception):
    """Base exception for programming errors; never caught by the engine."""

    pass


class UnknownMediaKindError(AcquisitionInvariantError):
    """A media item reported a snippet slot the engine does not know."""

    pass


class UnknownSnippetError(AcquisitionInvariantError, KeyError):
    """A snippet refers to a title transform or query format that does not exist."""

    pass

"""
Exceptions raised below the HTTP layer.

Route handlers convert these into status codes; nothing here knows about HTTP.
"""


class DatastoreError(Exception):
    """A query, transaction or pool operation against MySQL failed."""


class DatastoreUnavailable(DatastoreError):
    """The datastore could not be opened or did not answer the startup ping."""


class IdGenerationError(Exception):
    """A user id could not be generated (e.g. timestamp outside the ULID range)."""


class ShuttingDown(Exception):
    """Raised when a request arrives after shutdown has been requested."""


class ShutdownError(Exception):
    """Closing the datastore during shutdown failed; the process must abort."""

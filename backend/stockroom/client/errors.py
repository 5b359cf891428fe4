# Overview: Exceptions raised by the replica client.


class SyncError(Exception):
    """Base class for replica sync failures."""
    pass


class TransientSyncError(SyncError):
    """Network failure, timeout, bad HTTP status or unreadable response; retry later."""
    pass


class ConsistencyError(SyncError):
    """The replica can no longer be reconciled with the server and must resync from scratch."""
    pass

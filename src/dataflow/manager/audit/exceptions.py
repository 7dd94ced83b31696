"""Audit query exceptions."""


class AuditError(Exception):
    """Base exception for audit query operations."""

    pass


class ConfigurationMissing(AuditError):
    """Raised when no durable audit base entry exists for a lookup."""

    pass


class UnsupportedAuditType(ConfigurationMissing):
    """Raised when a (type, is_sent) pair has no configured audit id."""

    def __init__(self, item_type: str, is_sent: bool) -> None:
        self.item_type = item_type
        self.is_sent = is_sent
        direction = "sent" if is_sent else "received"
        super().__init__(f"audit id for type={item_type} ({direction}) is not supported")


class BackendUnavailable(AuditError):
    """Raised when a backend has no data source for one audit id."""

    pass


class BackendFailure(AuditError):
    """Raised on a transport or driver error while querying a backend."""

    pass


class ParseFailure(AuditError):
    """Raised when a timestamp label does not match the bucket format."""

    pass


class AuditSourceNotFound(AuditError):
    """Raised when no online audit source is registered."""

    pass

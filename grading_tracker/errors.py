from __future__ import annotations

"""Collaborator error hierarchy.

Failures in the portal session, the database or the mail transport are raised
as a CollaboratorError subclass with the original exception chained as
__cause__. The orchestrator records them per schedule group and moves on.
"""

__all__ = [
    "CollaboratorError",
    "PortalError",
    "PersistenceError",
    "NotificationError",
]


class CollaboratorError(Exception):
    """Base class for errors raised by external collaborators."""


class PortalError(CollaboratorError):
    """Portal login or report download failed."""


class PersistenceError(CollaboratorError):
    """A database read or write failed."""


class NotificationError(CollaboratorError):
    """The mail transport rejected or failed to send a notification."""

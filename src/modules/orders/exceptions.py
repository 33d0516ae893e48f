"""Order domain exceptions.

Raised by the Service Layer (and the workflow table) when pipeline rules
are violated.  The API layer (Views) catches these and translates them
into appropriate HTTP responses.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist or has been soft-deleted."""


class InvalidOrderStatus(Exception):
    """The order's current status does not allow the requested action."""


class ActionNotAllowed(Exception):
    """The acting user's role may not perform the requested action."""


class UnknownOrderAction(Exception):
    """The action name is not in the transition table (or is disabled)."""


class MissingRejectionReason(Exception):
    """A rejection was attempted without a non-empty reason."""


class InvalidTransitionPayload(Exception):
    """A transition tried to set an unknown status or a non-patchable field."""

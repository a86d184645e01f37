"""
ascend.errors — Error Taxonomy
===============================

Three failure families cross service boundaries:

- :class:`ValidationError` — a caller supplied an out-of-range value.
  Raised before any mutation.
- :class:`StorageError` — the database is unavailable or a write failed.
  Raised from :func:`ascend.database.engine.get_session`.
- :class:`PlatformActionError` — Discord refused a role grant/revoke.
  Built by :mod:`ascend.services.role_actions` and logged, never raised
  out of an event handler.
"""

from __future__ import annotations


class AscendError(Exception):
    """Base class for every Ascend error."""


class ValidationError(AscendError):
    """Out-of-range or unrecognized configuration input."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class StorageError(AscendError):
    """The durable store rejected or failed an operation."""


class PlatformActionError(AscendError):
    """A role grant/revoke request to Discord failed."""

    HINT = (
        "Common cause: the bot's highest role is below the role it is trying "
        "to manage, or it lacks the Manage Roles permission."
    )

    def __init__(
        self,
        action: str,
        *,
        guild_id: int,
        user_id: int,
        role_id: int,
        reason: str,
    ) -> None:
        super().__init__(
            f"Failed to {action} role {role_id} for user {user_id} "
            f"in guild {guild_id}: {reason}"
        )
        self.action = action
        self.guild_id = guild_id
        self.user_id = user_id
        self.role_id = role_id
        self.reason = reason

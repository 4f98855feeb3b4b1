"""
Exception classes for the moderation engine.

Services catch these at their public boundary and turn them into result
objects; they only travel between internal layers.
"""


class ModlError(Exception):
    """Base exception for all modl errors"""

    pass


class NotFoundError(ModlError):
    """Raised when a player, punishment type or ticket does not exist"""

    pass


class PlayerNotFound(NotFoundError):
    """Raised when a player identifier matches no stored player"""

    pass


class PunishmentTypeNotFound(NotFoundError):
    """Raised when a type ordinal/id is missing from the punishment catalog"""

    pass


class PunishmentNotFound(NotFoundError):
    """Raised when a punishment id is not part of a player's history"""

    pass


class TicketNotFound(NotFoundError):
    """Raised when a ticket id matches no stored ticket"""

    pass


class ExternalServiceError(ModlError):
    """Raised when the generative-text service fails or times out"""

    pass


class PersistenceError(ModlError):
    """Raised when a write to the player document store fails"""

    pass


class LoggingError(ModlError):
    """Raised when an audit log entry cannot be written"""

    pass

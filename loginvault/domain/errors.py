"""Errors raised by the credential recovery workflow and its collaborators."""

from enum import Enum


class AbortReason(str, Enum):
    """Why a forgot-password request ended without rotating the credential."""

    PLAYERS_ONLY = "players_only"
    FEATURE_DISABLED = "feature_disabled"
    ACCOUNT_NOT_LOADED = "account_not_loaded"
    ALREADY_LOGGED_IN = "already_logged_in"
    NO_CONTACT_ADDRESS = "no_contact_address"
    EXECUTION_ERROR = "execution_error"


class RecoveryError(Exception):
    """Base class for recovery workflow errors."""


class PreconditionError(RecoveryError):
    """A precondition check failed before any side effect happened."""

    def __init__(self, reason: AbortReason):
        super().__init__(reason.value)
        self.reason = reason


class ConfigurationError(RecoveryError):
    """Mail settings are missing or invalid."""


class CompositionError(RecoveryError):
    """The notification message could not be built."""


class DeliveryError(RecoveryError):
    """Sending a composed message failed."""


class StoreError(RecoveryError):
    """Persisting an account failed."""

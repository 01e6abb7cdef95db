"""Error taxonomy shared by the data layer and the HTTP routes.

Routes translate these into ``{"error": message}`` bodies using ``status``.
Nothing in this layer retries.
"""
from __future__ import annotations


class RaiderPalError(Exception):
    code = "error"
    status = 500

    def __init__(self, message: str, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status


class DataAccessError(RaiderPalError):
    """Upstream query failed: network, auth, malformed query or a row that breaks its contract."""

    code = "db_error"
    status = 500


class NotFoundError(RaiderPalError):
    code = "not_found"
    status = 404


class ValidationError(RaiderPalError):
    code = "invalid_params"
    status = 400


class ConfigurationError(RaiderPalError):
    """Missing or unusable configuration. Raised at startup, never per request."""

    code = "config_error"
    status = 500

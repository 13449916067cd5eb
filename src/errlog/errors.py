from __future__ import annotations


class ErrlogError(Exception):
    """Base exception for all errlog errors."""


class ConfigError(ErrlogError):
    """Initialization inputs are invalid."""


class CallerArgumentError(ErrlogError, ValueError):
    """Malformed extra arguments or empty required parameter."""


class EncodingFailure(ErrlogError):
    """Report could not be serialized or compressed; the report is dropped."""


class DeliveryFailure(ErrlogError):
    """Payload could not be delivered to the collector."""


class PayloadIntegrityError(ErrlogError):
    """Payload framing or digest does not verify."""

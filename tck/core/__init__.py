"""Core infrastructure: settings, logging, exceptions, key utilities."""

from .config import Settings, get_settings
from .exceptions import (
    ConfigurationError,
    ControlPlaneError,
    DomainRejection,
    EntityNotFound,
    HarnessError,
    OperationNotSupported,
    OracleUnavailable,
    StaleSessionError,
    TransportCode,
    TransportFailure,
    VerificationOrderError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "ConfigurationError",
    "ControlPlaneError",
    "DomainRejection",
    "EntityNotFound",
    "HarnessError",
    "OperationNotSupported",
    "OracleUnavailable",
    "Settings",
    "StaleSessionError",
    "TransportCode",
    "TransportFailure",
    "VerificationOrderError",
    "get_logger",
    "get_settings",
    "setup_logging",
]

"""Domain enumerations."""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Classification of a single failed provider call."""

    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    FATAL = "fatal"
    GENERIC = "generic"


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

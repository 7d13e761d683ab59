"""Constants used throughout pico-conventions.

This module defines the framework logger, the lifetime identifiers attached
to registrations, the attribute names stamped by the marker decorators and
the registration origins.
"""

import logging

LOGGER_NAME: str = "pico_conventions"
"""Default logger name for pico-conventions."""

LOGGER: logging.Logger = logging.getLogger(LOGGER_NAME)
"""Pre-configured logger instance for pico-conventions internal diagnostics."""

LIFETIME_TRANSIENT: str = "transient"
"""A new instance on every resolution."""

LIFETIME_SINGLETON: str = "singleton"
"""One instance per registration, cached in the container that owns it."""

LIFETIMES = (LIFETIME_TRANSIENT, LIFETIME_SINGLETON)

ABSTRACTION_FLAG: str = "_pico_abstraction"
"""Attribute set by :func:`~pico_conventions.reflection.abstraction` on a class body."""

CONSTRUCTOR_FLAG: str = "_pico_constructor"
"""Attribute set by :func:`~pico_conventions.reflection.constructor` on an alternate constructor."""

ORIGIN_EXPLICIT: str = "explicit"
ORIGIN_SCANNED: str = "scanned"
ORIGIN_IMPLICIT: str = "implicit"

OVERLAP_MERGE: str = "merge"
OVERLAP_ERROR: str = "error"
OVERLAP_POLICIES = (OVERLAP_MERGE, OVERLAP_ERROR)

ENV_PREFIX: str = "PICO_CONVENTIONS_"
"""Prefix read by :class:`~pico_conventions.settings.EnvSource` by default."""

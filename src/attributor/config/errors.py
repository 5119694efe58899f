"""Errors raised while reading attributor settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting is present but unusable, e.g. an unknown credit model or log level."""


class MissingConfigurationError(ConfigurationError):
    """A requested source feed has no ``ATTRIBUTOR_<SOURCE>_URL`` set."""

"""Errors raised while building settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """A setting is present but unusable (bad integer, unknown backend, ...)."""


class MissingConfigurationError(ConfigurationError):
    """Required environment variables are unset or blank.

    ``names`` lists every missing variable so an operator can fix them in one pass.
    """

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")

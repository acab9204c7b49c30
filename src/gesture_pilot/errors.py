"""Exceptions raised before the frame loop starts."""


class ConfigError(ValueError):
    """Invalid configuration: bad thresholds, unknown gestures or actions."""

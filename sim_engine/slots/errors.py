"""Exception types raised by the slot optimizer core."""


class SlotOptimizerError(Exception):
    """Base class for every error raised by sim_engine.slots."""


class ConfigurationError(SlotOptimizerError, ValueError):
    """A reel configuration that cannot be spun (short strip, missing symbol, weight < 1, ...)."""

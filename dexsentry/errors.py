class DexSentryError(Exception):
    """Base class for errors raised by dexsentry itself."""


class ResultsNotFoundError(DexSentryError):
    """No PhaseResult files exist in the results directory."""


class UnknownPhaseError(DexSentryError):
    """A phase key that is not in the registry was requested."""


class ConfigError(DexSentryError):
    """A setting taken from the environment has an unusable value."""

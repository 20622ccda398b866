class StatError(Exception):
    """Base class for failures reported by redis-stat."""


class ConfigError(StatError):
    pass


class SourceEmpty(StatError):
    pass


class SourceError(StatError):
    pass


class RetryExhausted(StatError):
    pass


class VMDisabled(StatError):
    pass

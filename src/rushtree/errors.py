class RushtreeError(RuntimeError):
    """Base error type."""


class ConfigError(RushtreeError):
    """Config contract violation."""


class TemplateError(ConfigError):
    """Folder template references a missing parent or loops back on itself."""


class SetupError(RushtreeError):
    """Project directory could not be created, renamed or cleaned."""


class QueryError(RushtreeError):
    """Query could not be resolved or executed."""

class LayerStackError(Exception):
    """Base class for every fatal generation error."""


class EmptySourceError(LayerStackError, ValueError):
    pass


class SourceAccessError(LayerStackError, OSError):
    pass


class DecodeError(LayerStackError, ValueError):
    pass


class PersistenceError(LayerStackError, RuntimeError):
    pass

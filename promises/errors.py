class PromiseError(Exception):
    """promise-related error"""


class InvalidStateError(PromiseError):
    """raised when a promise is used in a state that does not allow it,
    e.g. settling it a second time."""

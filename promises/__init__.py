"""Promises with then/fail/fin chaining, safe to settle from another thread."""

from .core import FULFILLED, PENDING, REJECTED, Promise, defer
from .errors import InvalidStateError, PromiseError
from .observers import Observer, Subscription

__all__ = [
    'Promise', 'defer',
    'PENDING', 'FULFILLED', 'REJECTED',
    'Observer', 'Subscription',
    'PromiseError', 'InvalidStateError',
]

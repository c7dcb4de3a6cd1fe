"""Running user handlers and turning what they produce into the settlement
of a derived promise.

A handler outcome is classified as one of:

* ``Value``: a plain return value, the derived promise is fulfilled with it
* ``Error``: a raised exception, or an exception instance returned as a
  value; the derived promise is rejected with it
* ``Forwarded``: another promise; the derived promise adopts its outcome
"""

from dataclasses import dataclass
from typing import Any

from . import core
from .observers import Observer


@dataclass(frozen=True)
class Value:
    value: Any


@dataclass(frozen=True)
class Error:
    reason: Any


@dataclass(frozen=True)
class Forwarded:
    promise: Any


def classify(returned):
    if isinstance(returned, core.Promise):
        return Forwarded(returned)
    if isinstance(returned, Exception):
        return Error(returned)
    return Value(returned)


def run_handler(handler, argument):
    try:
        returned = handler(argument)
    except Exception as e:
        return Error(e)
    return classify(returned)


def run_finally(on_finally):
    """Call a finally handler. Only failures and returned promises matter;
    any other return value is dropped."""
    if on_finally is None:
        return Value(None)
    try:
        returned = on_finally()
    except Exception as e:
        return Error(e)
    if isinstance(returned, core.Promise):
        return Forwarded(returned)
    return Value(None)


def settle(derived, result):
    if isinstance(result, Forwarded):
        result.promise.become(derived)
    elif isinstance(result, Error):
        derived.reject(result.reason)
    else:
        derived.fulfill(result.value)


class ChainObserver(Observer):
    """Observer created by then/fail/fin. Feeds the outcome of its source,
    passed through the handlers, into the derived promise."""

    def __init__(self, derived, on_fulfilled=None, on_rejected=None, on_finally=None):
        super(ChainObserver, self).__init__()
        self.derived = derived
        self.on_fulfilled = on_fulfilled
        self.on_rejected = on_rejected
        self.on_finally = on_finally
        self._value = None

    def on_next(self, value):
        self._value = value

    def on_completed(self):
        value = self._value
        self._after_finally(lambda: self._fulfilled(value))

    def on_error(self, reason):
        self._after_finally(lambda: self._rejected(reason))

    def _after_finally(self, proceed):
        # finally runs before the other handlers and sees the original outcome
        result = run_finally(self.on_finally)
        if isinstance(result, Error):
            settle(self.derived, result)
        elif isinstance(result, Forwarded):
            result.promise.subscribe(Observer(
                on_completed=proceed,
                on_error=self.derived.reject,
            ))
        else:
            proceed()

    def _fulfilled(self, value):
        if self.on_fulfilled is None:
            self.derived.fulfill(value)
            return
        settle(self.derived, run_handler(self.on_fulfilled, value))

    def _rejected(self, reason):
        if self.on_rejected is None:
            self.derived.reject(reason)
            return
        settle(self.derived, run_handler(self.on_rejected, reason))

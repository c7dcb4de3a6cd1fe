import logging
from threading import Lock
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import InvalidStateError
from .observers import ObserverRegistry, Subscription
from .resolution import ChainObserver

logger = logging.getLogger(__name__)

T = TypeVar('T')

PENDING = 'pending'
FULFILLED = 'fulfilled'
REJECTED = 'rejected'


def deliver(observer, state, result):
    if state == FULFILLED:
        observer.on_next(result)
        observer.on_completed()
    else:
        observer.on_error(result)


class Promise(Generic[T]):
    """A value or error that becomes available once, at some later time.

    Whoever holds the promise may settle it with fulfill() or reject(),
    exactly once. Consumers chain handlers with then(), fail() and fin();
    each call returns a new promise for the handler's outcome, and handlers
    attached after settlement still run, immediately.

    A promise is also an observer, so it can be subscribed to any upstream
    that delivers on_next/on_completed/on_error: it fulfills with the last
    value seen when the upstream completes.
    """

    def __init__(self, executor: Optional[Callable[[Callable, Callable], Any]] = None):
        self._state = PENDING
        self._result = None
        self._latest = None
        self._observers = ObserverRegistry()
        # held for state changes and registry bookkeeping, never around handlers
        self._lock = Lock()
        self._notifying = False

        if executor is None:
            return
        try:
            executor(self.fulfill, self.reject)
        except Exception as e:
            if not self._settle(REJECTED, e, strict=False):
                raise
            logger.debug('executor of %r raised, rejected', self, exc_info=True)

    @classmethod
    def resolved(cls, value: T) -> 'Promise[T]':
        promise = cls()
        promise.fulfill(value)
        return promise

    @classmethod
    def rejected(cls, reason) -> 'Promise[T]':
        promise = cls()
        promise.reject(reason)
        return promise

    # --- state ---

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state == PENDING

    @property
    def is_fulfilled(self) -> bool:
        return self._state == FULFILLED

    @property
    def is_rejected(self) -> bool:
        return self._state == REJECTED

    @property
    def value(self) -> T:
        if self._state != FULFILLED:
            raise InvalidStateError('promise is %s, not fulfilled' % self._state)
        return self._result

    @property
    def reason(self):
        if self._state != REJECTED:
            raise InvalidStateError('promise is %s, not rejected' % self._state)
        return self._result

    def __repr__(self):
        if self._state == PENDING:
            return '<Promise pending>'
        return '<Promise %s: %r>' % (self._state, self._result)

    # --- settlement ---

    def fulfill(self, value: T) -> None:
        self._settle(FULFILLED, value)

    def reject(self, reason) -> None:
        self._settle(REJECTED, reason)

    def _settle(self, state, result, strict=True):
        with self._lock:
            if self._state != PENDING:
                if strict:
                    raise InvalidStateError('promise already %s' % self._state)
                return False
            self._state = state
            self._result = result
            self._notifying = True
            entries = self._observers.drain()

        if state == REJECTED and not entries:
            logger.debug('%r has no observers, rejection dropped', self)
        self._notify(entries)
        return True

    def _notify(self, entries):
        # observers subscribing while a pass runs are queued in the registry
        # and picked up by the next round, so they fire after the snapshot
        while True:
            for _, observer in entries:
                self._deliver_safely(observer)
            with self._lock:
                entries = self._observers.drain()
                if not entries:
                    self._notifying = False
                    return

    def _deliver_safely(self, observer):
        try:
            deliver(observer, self._state, self._result)
        except Exception:
            logger.exception('observer %r of %r raised', observer, self)

    # --- observing ---

    def subscribe(self, observer) -> Subscription:
        """Register an observer; it is notified at once if already settled."""
        with self._lock:
            if self._state == PENDING or self._notifying:
                return self._observers.subscribe(observer)
        deliver(observer, self._state, self._result)
        return Subscription()

    def on_next(self, value):
        self._latest = value

    def on_completed(self):
        self._settle(FULFILLED, self._latest, strict=False)

    def on_error(self, reason):
        self._settle(REJECTED, reason, strict=False)

    # --- chaining ---

    def then(self, on_fulfilled: Optional[Callable[[T], Any]] = None,
             on_rejected: Optional[Callable[[Any], Any]] = None) -> 'Promise[Any]':
        return self._chain(on_fulfilled, on_rejected, None)

    def fail(self, on_rejected: Callable[[Any], Any]) -> 'Promise[Any]':
        return self._chain(None, on_rejected, None)

    def fin(self, on_finally: Callable[[], Any]) -> 'Promise[T]':
        """Run on_finally on either outcome, then pass the outcome on
        unchanged. A failure of on_finally replaces the outcome."""
        return self._chain(None, None, on_finally)

    def _chain(self, on_fulfilled, on_rejected, on_finally):
        derived = Promise()
        self.subscribe(ChainObserver(derived, on_fulfilled, on_rejected, on_finally))
        return derived

    def become(self, adopter: 'Promise[T]') -> None:
        """Make the pending promise `adopter` take on this promise's outcome.

        Everything waiting on `adopter` is moved here, and `adopter` itself
        settles when this promise does.
        """
        if adopter is self:
            self.reject(TypeError('a promise cannot adopt itself'))
            return

        first, second = sorted((self, adopter), key=id)
        with first._lock, second._lock:
            if adopter._state != PENDING:
                raise InvalidStateError('cannot adopt into a %s promise' % adopter._state)
            if self._state == PENDING or self._notifying:
                moved = adopter._observers.move_to(self._observers)
                self._observers.subscribe(adopter)
                logger.debug('%r adopting %r (%d observers moved)', adopter, self, moved)
                return
            entries = adopter._observers.drain()

        logger.debug('%r adopting settled %r (%d observers)', adopter, self, len(entries))
        for _, observer in entries:
            self._deliver_safely(observer)
        deliver(adopter, self._state, self._result)


def defer() -> Promise:
    return Promise()

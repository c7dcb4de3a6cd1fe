"""Observer side of a promise: the single-value notification contract and
the ordered registry a promise keeps of who is waiting on it.

An observer is any object with three methods::

    on_next(value)   # the value, delivered once, right before on_completed
    on_completed()   # the promise was fulfilled
    on_error(reason) # the promise was rejected

A promise delivers either ``on_next`` followed by ``on_completed``, or a
single ``on_error``, and never anything after that.
"""

from threading import Lock


class Observer(object):
    """Observer built from optional callables; missing ones are no-ops."""

    def __init__(self, on_next=None, on_error=None, on_completed=None):
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed

    def on_next(self, value):
        if self._on_next is not None:
            self._on_next(value)

    def on_completed(self):
        if self._on_completed is not None:
            self._on_completed()

    def on_error(self, reason):
        if self._on_error is not None:
            self._on_error(reason)


class Subscription(object):
    """Handle for one registration. unsubscribe() may be called any number
    of times, before or after the observer fired."""

    __slots__ = ('_registry',)

    def __init__(self, registry=None):
        self._registry = registry

    def unsubscribe(self):
        registry = self._registry
        # the registration may be moved to another registry meanwhile
        while registry is not None and not registry.unsubscribe(self):
            registry = self._registry

    @property
    def closed(self):
        registry = self._registry
        return registry is None or self not in registry


class ObserverRegistry(object):
    """Insertion-ordered mapping of Subscription -> observer.

    Notification always works on a copy taken by drain(), so observers that
    subscribe or unsubscribe while being notified cannot disturb the pass
    in progress.
    """

    def __init__(self):
        self._observers = {}
        self._lock = Lock()

    def subscribe(self, observer):
        handle = Subscription(self)
        with self._lock:
            self._observers[handle] = observer
        return handle

    def unsubscribe(self, handle):
        """Remove a registration. Returns False when the handle belongs to
        another registry by now."""
        with self._lock:
            if handle._registry is not self:
                return False
            self._observers.pop(handle, None)
            return True

    def move_to(self, other):
        """Move every registration to `other`, after the ones it already
        has. Handles stay valid for unsubscribe(). Returns how many moved."""
        first, second = sorted((self, other), key=id)
        with first._lock, second._lock:
            for handle, observer in self._observers.items():
                handle._registry = other
                other._observers[handle] = observer
            moved = len(self._observers)
            self._observers.clear()
        return moved

    def drain(self):
        """Remove every registration and return them, oldest first, as
        (handle, observer) pairs."""
        with self._lock:
            entries = list(self._observers.items())
            self._observers.clear()
        return entries

    def __contains__(self, handle):
        with self._lock:
            return handle in self._observers

    def __len__(self):
        with self._lock:
            return len(self._observers)

"""Observer registry used by the sign-in store"""

from typing import Any, Callable


class Disposable:
    """Handle returned by Emitter.on, disposing it unregisters the handler"""

    def __init__(self, dispose: Callable[[], None]):
        self._dispose = dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Unregister the handler, calling this more than once is a no-op"""
        if self._disposed:
            return
        self._disposed = True
        self._dispose()


class Emitter:
    """Named events with handlers invoked synchronously in registration order"""

    def __init__(self):
        self._handlers: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> Disposable:
        """Register a handler for an event"""
        self._handlers.setdefault(event, []).append(handler)

        def remove() -> None:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return Disposable(remove)

    def emit(self, event: str, *args: Any) -> None:
        """Invoke every handler registered for the event"""
        # Snapshot so handlers may dispose themselves while being notified
        for handler in list(self._handlers.get(event, [])):
            handler(*args)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

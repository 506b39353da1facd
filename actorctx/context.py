"""Execution context of an actor: spawned futures, waits, cancellation and lifecycle.

An *actor future* is either a generator (each ``next()`` that yields means
"pending", exhausting it means "done") or a callable ``fut(actor, ctx)``
returning a true value once complete.

The context object handed to actor hooks is whatever is passed to
:class:`ContextFut`; it must be a :class:`ContextParts` or expose one as
its ``parts`` attribute.

An actor may define any of ``started(ctx)``, ``stopping(ctx) -> Running``,
``stopped(ctx)`` and ``restarting(ctx)``; missing hooks are skipped, and a
missing ``stopping`` means :attr:`Running.STOP`.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Any, Protocol, Union

ActorFuture = Union[Generator[Any, Any, Any], Callable[[Any, Any], Any]]


class ContextFlags(enum.Flag):
    """Internal state bits of a context."""

    STARTED = 0b0000_0001
    RUNNING = 0b0000_0010
    STOPPING = 0b0000_0100
    STOPPED = 0b0001_0000
    MB_CAP_CHANGED = 0b0010_0000


class ActorState(enum.Enum):
    """Lifecycle state of an actor as seen through its context."""

    STARTED = "started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Running(enum.Enum):
    """Answer of an actor's ``stopping`` hook."""

    STOP = "stop"
    CONTINUE = "continue"


@dataclass(frozen=True, order=True)
class SpawnHandle:
    """Identifier of a future spawned into a context."""

    value: int = 0

    def next(self) -> SpawnHandle:
        """Return the handle that follows this one."""
        return SpawnHandle(self.value + 1)

    def __int__(self) -> int:
        return self.value


class AddressProducer(Protocol):
    def capacity(self) -> int: ...

    def set_capacity(self, cap: int) -> None: ...

    def sender(self) -> Any: ...

    def connected(self) -> bool: ...


class Mailbox(Protocol):
    def poll(self, actor: Any, ctx: Any) -> None: ...

    def connected(self) -> bool: ...

    def address(self) -> Any: ...


def _poll_future(fut: ActorFuture, actor: Any, ctx: Any) -> bool:
    """Advance ``fut`` once; return True when it has completed."""
    if isinstance(fut, Generator):
        try:
            next(fut)
        except StopIteration:
            return True
        return False
    return bool(fut(actor, ctx))


def _swap_remove(items: list, idx: int) -> None:
    items[idx] = items[-1]
    items.pop()


def _remove_by_handle(items: list[tuple[SpawnHandle, ActorFuture]], handle: SpawnHandle) -> bool:
    idx = next((i for i, (h, _) in enumerate(items) if h == handle), None)
    if idx is None:
        return False
    _swap_remove(items, idx)
    return True


class ContextParts:
    """State shared between an actor's context and the future that drives it."""

    def __init__(self, addr: AddressProducer) -> None:
        self._addr = addr
        self.flags = ContextFlags.RUNNING
        self._wait: list[ActorFuture] = []
        self._items: list[tuple[SpawnHandle, ActorFuture]] = []
        self._last = SpawnHandle()
        self._current = SpawnHandle()
        self._cancelled: list[SpawnHandle] = []

    def __repr__(self) -> str:
        return f"ContextParts(flags={self.flags!r})"

    def stop(self) -> None:
        """Begin stopping; the actor may still refuse from its ``stopping`` hook."""
        if ContextFlags.RUNNING in self.flags:
            self.flags = (self.flags & ~ContextFlags.RUNNING) | ContextFlags.STOPPING

    def terminate(self) -> None:
        """Stop execution unconditionally."""
        self.flags = ContextFlags.STOPPED

    def state(self) -> ActorState:
        if ContextFlags.RUNNING in self.flags:
            return ActorState.RUNNING
        if ContextFlags.STOPPED in self.flags:
            return ActorState.STOPPED
        if ContextFlags.STOPPING in self.flags:
            return ActorState.STOPPING
        return ActorState.STARTED

    def waiting(self) -> bool:
        """Whether the context is blocked on a wait future or is shutting down."""
        return bool(self._wait) or bool(
            self.flags & (ContextFlags.STOPPING | ContextFlags.STOPPED)
        )

    def curr_handle(self) -> SpawnHandle:
        """Handle of the future currently being polled."""
        return self._current

    def spawn(self, fut: ActorFuture) -> SpawnHandle:
        """Add a future to the context and return its handle."""
        self._last = self._last.next()
        self._items.append((self._last, fut))
        return self._last

    def wait(self, fut: ActorFuture) -> None:
        """Add a future that must finish before the actor handles more messages."""
        self._wait.append(fut)

    def cancel_future(self, handle: SpawnHandle) -> bool:
        """Schedule a previously spawned future for removal."""
        self._cancelled.append(handle)
        return True

    def capacity(self) -> int:
        return self._addr.capacity()

    def set_mailbox_capacity(self, cap: int) -> None:
        self.flags |= ContextFlags.MB_CAP_CHANGED
        self._addr.set_capacity(cap)

    def address(self) -> Any:
        return self._addr.sender()

    def restart(self) -> None:
        """Drop all futures and return to the running state; the mailbox is kept."""
        self.flags = ContextFlags.RUNNING
        self._wait = []
        self._items = []
        self._last = SpawnHandle()

    def started(self) -> bool:
        return ContextFlags.STARTED in self.flags

    def connected(self) -> bool:
        """Whether any senders are connected."""
        return self._addr.connected()


def _parts_of(ctx: Any) -> ContextParts:
    return ctx if isinstance(ctx, ContextParts) else ctx.parts


class ContextFut:
    """Drives an actor: runs its hooks, mailbox, spawned and waited futures."""

    def __init__(self, ctx: Any, act: Any, mailbox: Mailbox) -> None:
        self._ctx = ctx
        self._act = act
        self._mailbox = mailbox
        self._wait: list[ActorFuture] = []
        self._items: list[tuple[SpawnHandle, ActorFuture]] = []

    def __repr__(self) -> str:
        return "ContextFut(...)"

    def __enter__(self) -> ContextFut:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def _parts(self) -> ContextParts:
        return _parts_of(self._ctx)

    def ctx(self) -> Any:
        return self._ctx

    def address(self) -> Any:
        return self._mailbox.address()

    def _hook(self, name: str, default: Any = None) -> Any:
        hook = getattr(self._act, name, None)
        return default if hook is None else hook(self._ctx)

    def _stopping(self) -> bool:
        return bool(self._parts.flags & (ContextFlags.STOPPING | ContextFlags.STOPPED))

    def alive(self) -> bool:
        flags = self._parts.flags
        if ContextFlags.STOPPED in flags:
            return False
        return (
            ContextFlags.STARTED not in flags
            or self._mailbox.connected()
            or bool(self._items)
            or bool(self._wait)
        )

    def restart(self) -> bool:
        """Drop all futures and restart the actor if its mailbox is still connected."""
        if not self._mailbox.connected():
            return False
        self._wait = []
        self._items = []
        self._parts.restart()
        self._hook("restarting")
        return True

    def close(self) -> None:
        """Stop a still-alive actor and give it one last poll."""
        if self.alive():
            self._parts.stop()
            self.poll()

    def _merge(self) -> bool:
        parts = self._parts
        modified = False
        if parts._wait:
            modified = True
            self._wait.extend(parts._wait)
            parts._wait.clear()
        if parts._items:
            modified = True
            self._items.extend(parts._items)
            parts._items.clear()
        if ContextFlags.MB_CAP_CHANGED in parts.flags:
            modified = True
            parts.flags &= ~ContextFlags.MB_CAP_CHANGED
        if parts._cancelled:
            modified = True
        return modified

    def _clean_canceled_handles(self) -> None:
        parts = self._parts
        while parts._cancelled:
            handle = parts._cancelled.pop()
            if not _remove_by_handle(self._items, handle):
                _remove_by_handle(parts._items, handle)

    def _finish(self) -> bool:
        self._parts.flags = ContextFlags.STOPPED | ContextFlags.STARTED
        self._hook("stopped")
        return True

    def _poll_items(self) -> bool:
        """Poll spawned futures; return True when the outer loop must restart."""
        parts = self._parts
        idx = 0
        while idx < len(self._items) and not self._stopping():
            handle, fut = self._items[idx]
            parts._current = handle
            if _poll_future(fut, self._act, self._ctx):
                _swap_remove(self._items, idx)
                if parts.waiting():
                    self._merge()
                if self._wait and not self._stopping():
                    return True
                continue
            if parts.waiting():
                self._merge()
            if parts._cancelled:
                self._clean_canceled_handles()
                return True
            if self._wait and not self._stopping():
                # Move this item to the back so it cannot starve the others.
                last = len(self._items) - 1
                if idx != last:
                    self._items[idx], self._items[last] = self._items[last], self._items[idx]
                return True
            idx += 1
        return False

    def poll(self) -> bool:
        """Run the actor as far as it can go; return True once it has stopped."""
        parts = self._parts
        if ContextFlags.STARTED not in parts.flags:
            parts.flags |= ContextFlags.STARTED
            self._hook("started")
            if self._merge():
                self._clean_canceled_handles()

        while True:
            # Always poll the most recent wait future first.
            while self._wait and not self._stopping():
                if not _poll_future(self._wait[-1], self._act, self._ctx):
                    return False
                self._wait.pop()
                self._merge()

            self._mailbox.poll(self._act, self._ctx)
            if self._wait and not self._stopping():
                continue

            if self._poll_items():
                continue
            parts._current = SpawnHandle()

            if self._merge() and ContextFlags.STOPPING not in parts.flags:
                # With nothing left to cancel, drop stale handles or we would spin.
                if not self._items:
                    parts._cancelled.clear()
                continue

            flags = parts.flags
            if ContextFlags.RUNNING in flags:
                if not self.alive() and self._hook("stopping", Running.STOP) is Running.STOP:
                    return self._finish()
            elif ContextFlags.STOPPING in flags:
                if self._hook("stopping", Running.STOP) is Running.STOP:
                    return self._finish()
                parts.flags = (parts.flags & ~ContextFlags.STOPPING) | ContextFlags.RUNNING
                continue
            elif ContextFlags.STOPPED in flags:
                self._hook("stopped")
                return True
            return False
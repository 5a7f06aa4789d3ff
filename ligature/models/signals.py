"""
Ligature Model Signals — record lifecycle hooks.

Usage:
    from ligature.models.signals import pre_save, post_save

    @pre_save.connect(sender=Post)
    async def stamp_title(sender, instance, created, **kwargs):
        if created and not instance.Title:
            instance.Title = "Untitled"

    @post_save.connect
    def audit(sender, instance, created, **kwargs):
        log.info("saved %s", instance)

``pre_save`` and ``post_save`` fire inside ``Model.save()`` between the
relationship cascades and the record's own write. ``class_prepared`` fires
synchronously once a concrete model class is registered.
"""

from __future__ import annotations

import contextlib
import inspect
import logging
from typing import Any, Callable, Iterator, List, NamedTuple, Optional, Tuple, Type

logger = logging.getLogger("ligature.models.signals")

__all__ = [
    "Signal",
    "pre_save",
    "post_save",
    "pre_delete",
    "post_delete",
    "class_prepared",
    "receiver",
]


class _Receiver(NamedTuple):
    fn: Callable
    sender: Optional[Type]
    priority: int


class Signal:
    """
    A named hook receivers can subscribe to.

    Receivers are called with ``sender=<model class>`` plus the signal's
    keyword arguments, lowest ``priority`` first. A receiver bound to a
    sender only hears that exact class. Receivers may be plain functions or
    coroutine functions.
    """

    def __init__(self, name: str):
        self.name = name
        self._receivers: List[_Receiver] = []

    def connect(self, receiver: Optional[Callable] = None, *, sender: Optional[Type] = None,
                priority: int = 100):
        """Subscribe ``receiver``; without one, return a decorator."""
        if receiver is None:
            return lambda fn: self.connect(fn, sender=sender, priority=priority)

        if not any(r.fn is receiver and r.sender is sender for r in self._receivers):
            self._receivers.append(_Receiver(receiver, sender, priority))
            self._receivers.sort(key=lambda r: r.priority)
        return receiver

    def disconnect(self, receiver: Callable, *, sender: Optional[Type] = None) -> bool:
        """Unsubscribe ``receiver``. Returns False if it was not connected."""
        for entry in self._receivers:
            if entry.fn is receiver and (sender is None or entry.sender is sender):
                self._receivers.remove(entry)
                return True
        return False

    def _for(self, sender: Type) -> List[Callable]:
        return [r.fn for r in self._receivers if r.sender is None or r.sender is sender]

    async def send(self, sender: Type, **kwargs) -> List[Any]:
        """Call every matching receiver. The first exception aborts the send."""
        results = []
        for fn in self._for(sender):
            result = fn(sender=sender, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            results.append(result)
        return results

    def send_sync(self, sender: Type, **kwargs) -> List[Any]:
        """Call the synchronous receivers only; coroutine functions are skipped."""
        results = []
        for fn in self._for(sender):
            if inspect.iscoroutinefunction(fn):
                logger.warning(f"Signal '{self.name}': skipped async receiver {fn.__name__}")
                continue
            results.append(fn(sender=sender, **kwargs))
        return results

    async def robust_send(self, sender: Type, **kwargs) -> List[Tuple[Callable, Any]]:
        """
        Call every matching receiver even if some raise.

        Returns (receiver, result or exception) pairs.
        """
        results: List[Tuple[Callable, Any]] = []
        for fn in self._for(sender):
            try:
                result = fn(sender=sender, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                logger.error(f"Signal '{self.name}': receiver {fn.__name__} raised {exc!r}")
                result = exc
            results.append((fn, result))
        return results

    @property
    def receivers(self) -> List[Callable]:
        return [r.fn for r in self._receivers]

    def has_listeners(self, sender: Optional[Type] = None) -> bool:
        if sender is None:
            return bool(self._receivers)
        return bool(self._for(sender))

    @contextlib.contextmanager
    def connected(self, fn: Callable, *, sender: Optional[Type] = None,
                  priority: int = 100) -> Iterator[None]:
        """
        Connect ``fn`` for the duration of a ``with`` block.

        Usage:
            with pre_save.connected(check_title, sender=Post):
                await post.save()
        """
        self.connect(fn, sender=sender, priority=priority)
        try:
            yield
        finally:
            self.disconnect(fn, sender=sender)

    def clear(self) -> None:
        self._receivers.clear()

    def __repr__(self) -> str:
        return f"<Signal {self.name!r} receivers={len(self._receivers)}>"


pre_save = Signal("pre_save")
post_save = Signal("post_save")
pre_delete = Signal("pre_delete")
post_delete = Signal("post_delete")
class_prepared = Signal("class_prepared")


def receiver(signal: Signal, *, sender: Optional[Type] = None):
    """
    Decorator form of ``signal.connect``.

    Usage:
        @receiver(post_save, sender=Thread)
        async def announce(sender, instance, created, **kwargs):
            ...
    """
    return signal.connect(sender=sender)

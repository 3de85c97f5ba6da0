"""Type identity for materialized objects.

The class of a materialized object is a synthetic dispatch table, not the
declared type, and declared types share no real inheritance. Left alone,
isinstance() would say no for every declared type in the chain. This module
keeps an explicit registry of declared types and answers membership from the
synthetic ancestry instead:

    bar = from_(Ctor.new(Foo, foo="foo")).new(Bar, bar="bar").construct()
    lineage(bar)             # (Bar, Foo)
    is_instance(bar, Foo)    # True

A dispatch table is recognised by the ``__ctor_declared__`` entry in its own
namespace (the declared type it was copied from); ``__ctor_parent__`` links it
to the table one level up.

Types declared on Base or Implementation[T] are created by CtorMeta, which
registers them when the class statement runs and routes isinstance() and
issubclass() through the registry. Plain classes are registered lazily on
first materialization and can only be queried with is_instance().
"""

import logging
import threading
from abc import ABC, ABCMeta
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, Mapping


logger = logging.getLogger(__name__)

# Entries owned by the declared class object itself, never copied into a table.
_UNCOPIED = frozenset({
    "__dict__",
    "__weakref__",
    "__slots__",
    "__abstractmethods__",
    "_abc_impl",
    "__orig_bases__",
    "__parameters__",
    "__init_subclass__",
    "__class_getitem__",
    "__ctor_engine__",
})


@dataclass(frozen=True)
class Declaration:
    """Registry entry for one declared type.

    namespace is the flattened method table copied into every dispatch table
    built for the type. lineage is the type followed by the real ancestors it
    inherits members from, engine classes excluded.
    """

    cls: type
    namespace: Mapping[str, Any]
    lineage: tuple[type, ...]


_registry: dict[type, Declaration] = {}
_lock = threading.Lock()


def is_table(klass: Any) -> bool:
    """True if klass is a dispatch table built by materialize()."""
    return isinstance(klass, type) and "__ctor_declared__" in klass.__dict__


def _is_engine(klass: type) -> bool:
    return (
        klass is object
        or klass is Generic
        or klass is ABC
        or bool(klass.__dict__.get("__ctor_engine__", False))
    )


def _declare(cls: type) -> Declaration:
    if not isinstance(cls, type) or is_table(cls) or _is_engine(cls):
        raise TypeError(f"{cls!r} cannot be a declared type")
    lineage = tuple(k for k in cls.__mro__ if not _is_engine(k))
    namespace: dict[str, Any] = {}
    for klass in reversed(lineage):
        if klass.__dict__.get("__slots__"):
            raise TypeError(
                f"{klass.__qualname__} declares __slots__; "
                f"declared types must keep an instance __dict__"
            )
        namespace.update(
            (name, value) for name, value in klass.__dict__.items()
            if name not in _UNCOPIED
        )
    return Declaration(cls, MappingProxyType(namespace), lineage)


def arm(cls: type) -> Declaration:
    """Register cls if it is not registered yet and return its entry.

    Install-if-absent under a lock, so concurrent first constructions of the
    same type agree on one entry.
    """
    with _lock:
        entry = _registry.get(cls)
        if entry is None:
            entry = _registry[cls] = _declare(cls)
            logger.debug(
                "armed %s (lineage: %s)",
                cls.__qualname__,
                ", ".join(k.__qualname__ for k in entry.lineage),
            )
    return entry


def is_armed(cls: type) -> bool:
    """True once cls has a registry entry."""
    return cls in _registry


def declaration(cls: type) -> Declaration | None:
    """The registry entry of cls, or None if cls was never armed."""
    return _registry.get(cls)


def _table_lineage(table: type) -> tuple[type, ...]:
    types: list[type] = []
    while is_table(table):
        types.extend(_registry[table.__dict__["__ctor_declared__"]].lineage)
        table = table.__dict__["__ctor_parent__"]
    return tuple(types)


def lineage(obj: Any) -> tuple[type, ...]:
    """Declared types across obj's synthetic ancestry, leaf level first.

    Empty for objects that were not built by materialize().
    """
    return _table_lineage(type(obj))


def _answers_from_lineage(cls: Any, subclass: Any) -> bool:
    return (
        is_table(subclass)
        and isinstance(cls, type)
        and not is_table(cls)
        and not _is_engine(cls)
    )


def is_instance(obj: Any, cls: type | tuple[type, ...]) -> bool:
    """isinstance() that understands synthetic ancestries, for any class."""
    if isinstance(cls, tuple):
        return any(is_instance(obj, c) for c in cls)
    if _answers_from_lineage(cls, type(obj)):
        return cls in _table_lineage(type(obj))
    return isinstance(obj, cls)


class CtorMeta(ABCMeta):
    """Metaclass of Base: registers declared types, answers isinstance()."""

    def __init__(cls, name, bases, namespace, **kwargs):
        super().__init__(name, bases, namespace, **kwargs)
        if "__ctor_declared__" not in namespace and not namespace.get("__ctor_engine__"):
            arm(cls)

    def __instancecheck__(cls, instance):
        if _answers_from_lineage(cls, type(instance)):
            return cls in _table_lineage(type(instance))
        return super().__instancecheck__(instance)

    def __subclasscheck__(cls, subclass):
        if _answers_from_lineage(cls, subclass):
            return cls in _table_lineage(subclass)
        return super().__subclasscheck__(subclass)

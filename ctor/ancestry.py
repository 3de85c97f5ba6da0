"""Synthetic ancestor base and ancestor delegation.

A declared type never inherits from its real parent: the parent is only
known once a descriptor chain is materialized. Subclass Implementation[T]
instead of T, and reach the parent level through self._super the way a
normal class would use super():

    class Bar(Implementation[Foo]):
        def __init__(self, bar):
            self.bar = bar

        def clone(self):
            return from_(self._super.clone()).new(Bar, bar=self.bar)

self._super is computed on every access. Like zero-argument super(), it
looks at the code object of the calling frame to find which level's method
is running, steps one level up the synthetic ancestry and returns a
read-only view whose methods are bound to self. An ancestor method that uses
self._super in turn resolves its own level, so delegation chains through any
number of levels. Code nested in a method (comprehensions, generator
expressions, inner functions) counts as that method.

Frame lookup relies on sys._getframe, so only CPython is supported.
"""

import sys
from types import CodeType
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ctor.identity import CtorMeta, is_table, lineage


T = TypeVar("T")


class AncestorView:
    """One level of a synthetic ancestry, seen through an instance.

    Every attribute read, dunders included, is looked up on the level.
    Reading a descriptor (method, property, classmethod) binds it to the
    instance. Plain values come back unchanged. Assignment is refused.
    """

    __slots__ = ("_view_instance", "_view_table")

    def __init__(self, instance, table):
        object.__setattr__(self, "_view_instance", instance)
        object.__setattr__(self, "_view_table", table)

    def __getattribute__(self, name):
        table = object.__getattribute__(self, "_view_table")
        for klass in table.__mro__:
            if name in klass.__dict__:
                value = klass.__dict__[name]
                break
        else:
            raise AttributeError(
                f"ancestor {table.__qualname__!r} has no attribute {name!r}"
            )
        bind = getattr(type(value), "__get__", None)
        if bind is None:
            return value
        return bind(value, object.__getattribute__(self, "_view_instance"), table)

    def __setattr__(self, name, value):
        raise AttributeError(f"cannot assign {name!r} through an ancestor view")

    def __delattr__(self, name):
        raise AttributeError(f"cannot delete {name!r} through an ancestor view")

    def __repr__(self):
        table = object.__getattribute__(self, "_view_table")
        instance = object.__getattribute__(self, "_view_instance")
        return f"<ancestor {table.__qualname__} of {instance!r}>"


def _executing_level(instance: Any, code: CodeType) -> type:
    """The table whose method owns code; the active table if none does."""
    table = type(instance)
    return table.__dict__.get("__ctor_levels__", {}).get(code, table)


def _view_above(instance: Any, table: type) -> AncestorView:
    return AncestorView(instance, table.__dict__.get("__ctor_parent__", Base))


def ancestor(instance: Any, declared: type | None = None) -> AncestorView:
    """Explicit form of self._super.

    Returns the view one level above the level contributed by declared, or
    above the active level when declared is omitted. Useful from callables
    defined outside the class, whose frames belong to no level.
    """
    table = type(instance)
    if declared is not None:
        while is_table(table) and table.__dict__["__ctor_declared__"] is not declared:
            table = table.__dict__["__ctor_parent__"]
        if not is_table(table):
            raise TypeError(
                f"{declared.__qualname__} is not a level of {type(instance).__qualname__}"
            )
    return _view_above(instance, table)


class Base(metaclass=CtorMeta):
    """Root of every synthetic ancestry.

    Level 0 of every materialized object links here. Declare root types on
    Base to get native isinstance() support.
    """

    __ctor_engine__ = True

    @property
    def _super(self) -> Any:
        caller = sys._getframe(1).f_code
        return _view_above(self, _executing_level(self, caller))

    def __repr__(self):
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        levels = "/".join(k.__qualname__ for k in reversed(lineage(self)))
        return f"{levels or type(self).__qualname__}({fields})"


class Implementation(Base, Generic[T]):
    """Stand-in for "some implementation of T", supplied at construction.

    class Bar(Implementation[Foo]) type-checks as a Foo, and self._super is
    typed as Foo. The real Foo level comes from the Ctor chain that builds
    each Bar.
    """

    __ctor_engine__ = True

    if TYPE_CHECKING:
        @property
        def _super(self) -> T: ...

"""Tests for ctor.materialize: replaying a chain onto one instance."""

import logging
from abc import abstractmethod

import pytest

from ctor.ancestry import Base, Implementation
from ctor.config import CtorConfig, configure
from ctor.descriptor import Ctor, from_
from ctor.materialize import FieldCollisionError


class Foo(Base):
    def __init__(self, foo):
        self.foo = foo

    def name(self):
        return "Foo"

    def greet(self):
        return f"hello from {self.name()}"

    def only_foo(self):
        return "foo!"


class Bar(Implementation[Foo]):
    def __init__(self, bar):
        self.bar = bar

    def name(self):
        return "Bar"


class Baz(Implementation[Bar]):
    def __init__(self, baz):
        self.baz = baz


def make_baz():
    foo_ctor = Ctor.new(Foo, foo="foo")
    bar_ctor = from_(foo_ctor).new(Bar, bar="bar")
    return from_(bar_ctor).new(Baz, baz="baz")


def test_single_level_fields():
    foo = Ctor.new(Foo, foo="x").construct()
    assert foo.foo == "x"
    assert vars(foo) == {"foo": "x"}


def test_fields_from_every_level():
    baz = make_baz().construct()
    assert baz.foo == "foo"
    assert baz.bar == "bar"
    assert baz.baz == "baz"
    assert vars(baz) == {"foo": "foo", "bar": "bar", "baz": "baz"}


def test_methods_from_every_level():
    baz = make_baz().construct()
    assert baz.only_foo() == "foo!"
    assert baz.name() == "Bar"


def test_late_binding_reaches_lowest_override():
    """Foo.greet calls self.name(), which resolves at the leaf end first."""
    foo = Ctor.new(Foo, foo="foo").construct()
    bar = from_(Ctor.new(Foo, foo="foo")).new(Bar, bar="bar").construct()
    assert foo.greet() == "hello from Foo"
    assert bar.greet() == "hello from Bar"


def test_construct_twice_gives_independent_instances():
    ctor = make_baz()
    a = ctor.construct()
    b = ctor.construct()
    assert a is not b
    assert vars(a) == vars(b)
    assert type(a) is not type(b)
    a.foo = "changed"
    assert b.foo == "foo"


def test_sibling_children_share_parent_ctor_not_state():
    foo_ctor = Ctor.new(Foo, foo="foo")
    left = from_(foo_ctor).new(Bar, bar="left").construct()
    right = from_(foo_ctor).new(Bar, bar="right").construct()
    assert isinstance(left, Foo)
    assert isinstance(right, Foo)
    left.foo = "mutated"
    assert right.foo == "foo"
    assert right.bar == "right"


def test_mutable_arguments_are_shared_by_reference():
    """Arguments are captured, not copied: both instances see the same list."""
    items = [1, 2]
    ctor = Ctor.new(Foo, foo=items)
    assert ctor.construct().foo is items


def test_initializer_error_propagates():
    class Boom(Base):
        def __init__(self):
            raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        from_(Ctor.new(Foo, foo="foo")).new(Boom).construct()


def test_initializer_error_in_root_stops_chain():
    calls = []

    class Root(Base):
        def __init__(self):
            raise KeyError("root")

    class Child(Implementation[Root]):
        def __init__(self):
            calls.append("child")

    with pytest.raises(KeyError):
        from_(Ctor.new(Root)).new(Child).construct()
    assert calls == []


class Named(Base):
    def __init__(self, name):
        self.label = name


class Renamed(Implementation[Named]):
    def __init__(self, name):
        self.label = name


def test_field_collision_last_write_wins_by_default(caplog):
    with caplog.at_level(logging.WARNING, logger="ctor"):
        obj = from_(Ctor.new(Named, "first")).new(Renamed, "second").construct()
    assert obj.label == "second"
    assert caplog.text == ""


def test_field_collision_warn_policy_logs(caplog):
    configure(CtorConfig(field_collisions="warn"))
    with caplog.at_level(logging.WARNING, logger="ctor.materialize"):
        obj = from_(Ctor.new(Named, "first")).new(Renamed, "second").construct()
    assert obj.label == "second"
    assert "Renamed reassigns label" in caplog.text


def test_field_collision_error_policy_raises():
    configure(CtorConfig(field_collisions="error"))
    with pytest.raises(FieldCollisionError, match="label"):
        from_(Ctor.new(Named, "first")).new(Renamed, "second").construct()


def test_disjoint_fields_pass_error_policy():
    configure(CtorConfig(field_collisions="error"))
    baz = make_baz().construct()
    assert baz.baz == "baz"


def test_plain_classes_materialize():
    class Point:
        def __init__(self, x, y):
            self.x = x
            self.y = y

        def norm1(self):
            return abs(self.x) + abs(self.y)

    p = Ctor.new(Point, 3, y=-4).construct()
    assert p.norm1() == 7
    assert vars(p) == {"x": 3, "y": -4}


def test_real_inheritance_inside_a_level_is_flattened():
    class Animal(Base):
        def sound(self):
            return "..."

        def speak(self):
            return f"{self.name} says {self.sound()}"

    class Cat(Animal):
        def __init__(self, name):
            self.name = name

        def sound(self):
            return "meow"

    cat = Ctor.new(Cat, "tom").construct()
    assert cat.speak() == "tom says meow"
    assert isinstance(cat, Animal)


def test_slotted_declared_type_is_rejected():
    class Slotted:
        __slots__ = ("x",)

        def __init__(self, x):
            self.x = x

    with pytest.raises(TypeError, match="__slots__"):
        Ctor.new(Slotted, 1).construct()


def test_slotted_base_subclass_rejected_at_definition():
    with pytest.raises(TypeError, match="__slots__"):
        class Slotted(Base):
            __slots__ = ("x",)


class Shape(Base):
    def __init__(self, color):
        self.color = color

    @abstractmethod
    def area(self):
        ...

    def describe(self):
        return f"{self.color} shape of area {self.area()}"


class Square(Implementation[Shape]):
    def __init__(self, side):
        self.side = side

    def area(self):
        return self.side * self.side


def test_abstract_root_is_extended():
    shape_ctor: Ctor[Shape] = Ctor.new_abstract(Shape, color="red")
    square = from_(shape_ctor).new(Square, side=3).construct()
    assert square.describe() == "red shape of area 9"
    assert isinstance(square, Shape)
    assert isinstance(square, Square)
    assert square.color == "red"
    assert square.side == 3


def test_abstract_leaf_cannot_construct():
    with pytest.raises(TypeError, match="abstract"):
        Ctor.new_abstract(Shape, color="red").construct()


def test_materialize_logs_at_debug(caplog):
    class Quiet:
        pass

    with caplog.at_level(logging.DEBUG, logger="ctor"):
        Ctor.new(Quiet).construct()
    assert "armed" in caplog.text
    assert "materialized Quiet from 1 level(s)" in caplog.text

"""Behavior tests for the process-wide spy entry points."""

from __future__ import annotations

import threading

import pytest

import callspy
from callspy import (
    ALL,
    AlreadySpiedError,
    InterceptionMode,
    InvalidArgumentError,
    MethodNotSpiedError,
    NoSuchMethodError,
    Spy,
    Visibility,
)
from tests.test_doubles.fake_targets import FakeClass, FakeSubclass, SlottedClass


# --- on_any_instance ---


def test_on_any_instance_counts_calls_across_new_instances():
    spy = callspy.on_any_instance(FakeClass, "age")

    FakeClass().age()
    assert spy.call_count == 1

    FakeClass().age()
    assert spy.call_count == 2


def test_on_any_instance_covers_instances_created_before_the_spy():
    before = FakeClass()
    spy = callspy.on_any_instance(FakeClass, "age")
    after = FakeClass()

    assert before.age() == 25
    assert after.age() == 25
    assert spy.call_count == 2


def test_on_any_instance_rejects_second_spy_on_same_method():
    callspy.on_any_instance(FakeClass, "age")

    with pytest.raises(AlreadySpiedError):
        callspy.on_any_instance(FakeClass, "age")


def test_on_any_instance_requires_a_class():
    with pytest.raises(InvalidArgumentError):
        callspy.on_any_instance(FakeClass(), "age")


def test_on_any_instance_ignores_overriding_subclasses():
    spy = callspy.on_any_instance(FakeClass, "age")

    assert FakeSubclass().age() == 30
    assert spy.call_count == 0


def test_on_any_instance_works_for_slotted_classes():
    spy = callspy.on_any_instance(SlottedClass, "read")

    assert SlottedClass().read() == 1
    assert spy.call_count == 1


# --- on ---


def test_on_with_no_arguments_raises_invalid_argument():
    with pytest.raises(InvalidArgumentError):
        callspy.on()


def test_on_with_one_argument_raises_invalid_argument():
    with pytest.raises(InvalidArgumentError):
        callspy.on(list)


def test_on_with_three_arguments_raises_invalid_argument():
    with pytest.raises(InvalidArgumentError):
        callspy.on(FakeClass, "age", "extra")


def test_invalid_argument_error_is_a_type_error():
    with pytest.raises(TypeError):
        callspy.on(FakeClass)


def test_on_rejects_non_string_method_names():
    with pytest.raises(InvalidArgumentError):
        callspy.on(FakeClass, 42)


def test_on_replaces_the_method_of_an_object():
    obj = FakeClass()
    old_method = obj.age

    callspy.on(obj, "age")

    assert obj.age != old_method


def test_on_replaces_the_static_method_of_a_class():
    old_method = FakeClass.hello_world

    callspy.on(FakeClass, "hello_world")

    assert FakeClass.hello_world is not old_method


def test_on_keeps_return_values_unchanged():
    callspy.on(FakeClass, "hello_world")
    assert FakeClass.hello_world() == "hello world"

    instance = FakeClass()
    callspy.on(instance, "age")
    assert instance.age() == 25


def test_on_raises_when_method_is_missing():
    with pytest.raises(NoSuchMethodError):
        callspy.on(FakeClass, "this_does_not_exist")


def test_no_such_method_error_is_an_attribute_error():
    with pytest.raises(AttributeError):
        callspy.on(FakeClass(), "this_does_not_exist")


def test_on_raises_when_method_is_already_spied():
    callspy.on(FakeClass, "hello_world")

    with pytest.raises(AlreadySpiedError):
        callspy.on(FakeClass, "hello_world")


def test_failed_second_spy_leaves_first_spy_working():
    spy = callspy.on(FakeClass, "hello_world")

    with pytest.raises(AlreadySpiedError):
        callspy.on(FakeClass, "hello_world")
    FakeClass.hello_world()

    assert spy.call_count == 1
    assert len(callspy.get_registry()) == 1


def test_on_returns_a_spy():
    assert isinstance(callspy.on(FakeClass, "hello_world"), Spy)


def test_on_tracks_multiple_methods_of_one_receiver_independently():
    spy_a = callspy.on(FakeClass, "hello_world")
    spy_b = callspy.on(FakeClass, "repeat")

    FakeClass.hello_world()
    assert spy_a.call_count == 1
    assert spy_b.call_count == 0

    FakeClass.repeat("test")
    assert spy_a.call_count == 1
    assert spy_b.call_count == 1


def test_on_keeps_private_method_private():
    obj = FakeClass()
    assert "_FakeClass__private" in vars(FakeClass)

    spy = callspy.on(obj, "__private")

    assert spy.snapshot.visibility is Visibility.PRIVATE
    assert not hasattr(obj, "__private")
    assert obj.call_private() == "private"
    assert spy.call_count == 1

    callspy.restore(obj, "__private")

    assert "_FakeClass__private" not in vars(obj)
    assert not hasattr(obj, "__private")
    assert obj.call_private() == "private"


def test_on_accepts_the_mangled_private_name():
    obj = FakeClass()
    spy = callspy.on(obj, "_FakeClass__private")

    with pytest.raises(AlreadySpiedError):
        callspy.on(obj, "__private")

    obj.call_private()
    assert spy.call_count == 1


def test_on_keeps_protected_classification():
    spy = callspy.on(FakeClass(), "_protected")

    assert spy.snapshot.visibility is Visibility.PROTECTED


def test_on_keeps_protected_names_with_inner_double_underscore():
    obj = FakeClass()
    spy = callspy.on(obj, "_get__cached")

    assert spy.snapshot.visibility is Visibility.PROTECTED
    assert obj._get__cached() == "cached"


def test_mangled_private_name_is_private():
    spy = callspy.on(FakeClass(), "_FakeClass__private")

    assert spy.snapshot.visibility is Visibility.PRIVATE


def test_on_dispatches_on_class_versus_instance_targets():
    class_spy = callspy.on(FakeClass, "hello_world")
    instance_spy = callspy.on(FakeClass(), "age")

    assert class_spy.key.mode is InterceptionMode.TYPE
    assert instance_spy.key.mode is InterceptionMode.INSTANCE


# --- restore ---


def test_restore_all_restores_every_spied_method():
    obj = FakeClass()
    obj_method = obj.age
    klass_method = FakeClass.hello_world

    callspy.on(obj, "age")
    callspy.on(FakeClass, "hello_world")

    callspy.restore(ALL)

    assert obj.age == obj_method
    assert FakeClass.hello_world is klass_method


def test_restore_restores_the_method_of_an_object():
    obj = FakeClass()
    obj_method = obj.age

    callspy.on(obj, "age")
    callspy.restore(obj, "age")

    assert obj.age == obj_method
    assert "age" not in vars(obj)


def test_restore_raises_when_method_is_not_spied():
    with pytest.raises(MethodNotSpiedError):
        callspy.restore(FakeClass(), "age")


def test_restore_twice_raises_method_not_spied():
    obj = FakeClass()
    callspy.on(obj, "age")
    callspy.restore(obj, "age")

    with pytest.raises(MethodNotSpiedError):
        callspy.restore(obj, "age")


def test_restore_all_empties_the_registry():
    obj = FakeClass()
    callspy.on(obj, "age")
    callspy.on(FakeClass, "hello_world")
    callspy.on_any_instance(FakeClass, "echo")

    callspy.restore_all()

    assert len(callspy.get_registry()) == 0
    with pytest.raises(MethodNotSpiedError):
        callspy.restore(obj, "age")
    with pytest.raises(MethodNotSpiedError):
        callspy.restore(FakeClass, "hello_world")


def test_restore_with_wrong_arity_raises_invalid_argument():
    with pytest.raises(InvalidArgumentError):
        callspy.restore()
    with pytest.raises(InvalidArgumentError):
        callspy.restore(FakeClass)


def test_restore_on_a_class_falls_back_to_any_instance_spy():
    original = vars(FakeClass)["age"]
    callspy.on_any_instance(FakeClass, "age")

    callspy.restore(FakeClass, "age")

    assert vars(FakeClass)["age"] is original


def test_restore_any_instance_restores_shared_method():
    original = vars(FakeClass)["age"]
    spy = callspy.on_any_instance(FakeClass, "age")

    callspy.get_registry().restore_any_instance(FakeClass, "age")
    FakeClass().age()

    assert vars(FakeClass)["age"] is original
    assert spy.call_count == 0
    assert spy.restored is True


def test_spy_can_be_reinstalled_after_restore():
    first = callspy.on(FakeClass, "hello_world")
    callspy.restore(FakeClass, "hello_world")

    second = callspy.on(FakeClass, "hello_world")
    FakeClass.hello_world()

    assert first.call_count == 0
    assert second.call_count == 1


def test_reset_registry_restores_and_replaces_default_registry():
    before = callspy.get_registry()
    callspy.on(FakeClass, "hello_world")

    callspy.reset_registry()

    after = callspy.get_registry()
    assert after is not before
    assert len(before) == 0
    assert "hello_world" in vars(FakeClass)
    assert isinstance(vars(FakeClass)["hello_world"], staticmethod)


def test_get_returns_live_spy_until_restored(registry):
    obj = FakeClass()
    spy = registry.on(obj, "age")

    assert registry.get(obj, "age") is spy
    assert spy.key in registry
    assert registry.spies() == [spy]

    registry.restore(obj, "age")

    assert registry.get(obj, "age") is None
    assert spy.key not in registry


# --- concurrency ---


def race(count, action):
    """Run ``action`` from ``count`` threads released at once; return outcomes."""
    barrier = threading.Barrier(count)
    outcomes: list = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            result = action()
        except Exception as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


def test_concurrent_installs_on_one_method_admit_exactly_one():
    obj = FakeClass()

    outcomes = race(16, lambda: callspy.on(obj, "age"))

    spies = [o for o in outcomes if isinstance(o, Spy)]
    assert len(spies) == 1
    assert all(isinstance(o, AlreadySpiedError) for o in outcomes if o is not spies[0])
    assert callspy.get_registry().get(obj, "age") is spies[0]


def test_concurrent_restores_of_one_method_admit_exactly_one():
    obj = FakeClass()
    callspy.on(obj, "age")

    outcomes = race(16, lambda: callspy.restore(obj, "age"))

    assert outcomes.count(None) == 1
    assert all(isinstance(o, MethodNotSpiedError) for o in outcomes if o is not None)
    assert "age" not in vars(obj)
    assert obj.age.__func__ is vars(FakeClass)["age"]
    assert len(callspy.get_registry()) == 0

import unittest

import pytest

from modbind import Injector, NoProviderError, NoProviderForScopeError, scope


class TestChildInjector(unittest.TestCase):
    def test_child_resolves_own_providers(self):
        parent = Injector([{"a": ("value", "a-parent")}])
        child = parent.create_child([{"c": ("value", "c-child")}])

        assert child.get("c") == "c-child"

    def test_child_provides_itself_as_injector(self):
        parent = Injector([])
        child = parent.create_child([])

        assert child.get("injector") is child

    def test_child_resolves_from_parent_when_not_provided_locally(self):
        parent = Injector([{"a": ("factory", lambda: object())}])
        child = parent.create_child([])

        assert child.get("a") is parent.get("a")

    def test_child_registration_overrides_parent_registration(self):
        parent = Injector([{"a": ("value", "a-parent")}])
        child = parent.create_child([{"a": ("value", "a-child")}])

        assert child.get("a") == "a-child"
        assert parent.get("a") == "a-parent"

    def test_parent_factory_never_sees_child_dependency(self):
        parent = Injector([{"b": ("factory", lambda c: "b-parent")}])
        child = parent.create_child([{"c": ("value", "c-child")}])

        with pytest.raises(NoProviderError) as ctx:
            child.get("b")

        assert str(ctx.value) == 'No provider for "c"! (Resolving: b -> c)'

    def test_miss_path_includes_names_resolved_in_child(self):
        parent = Injector([{"b": ("factory", lambda c: "b-parent")}])
        child = parent.create_child([{"x": ("factory", lambda b: b)}])

        with pytest.raises(NoProviderError) as ctx:
            child.get("x")

        assert ctx.value.path == ("x", "b", "c")

        # both stacks were unwound
        with pytest.raises(NoProviderError) as ctx:
            child.get("y")
        assert ctx.value.path == ("y",)

    def test_miss_path_from_child_through_private_export(self):
        parent = Injector([{"__exports__": ["foo"], "foo": ("factory", lambda zzz: zzz)}])
        child = parent.create_child([{"bar": ("factory", lambda foo: foo)}])

        with pytest.raises(NoProviderError) as ctx:
            child.get("bar")

        assert ctx.value.path == ("bar", "foo", "zzz")

    def test_miss_path_from_forced_private_export(self):
        parent = Injector([{"__exports__": ["foo"], "foo": ("factory", lambda zzz: zzz)}])
        child = parent.create_child([], ["foo"])

        with pytest.raises(NoProviderError) as ctx:
            child.get("foo")

        assert ctx.value.path == ("foo", "zzz")


class TestForcedInstances(unittest.TestCase):
    def test_force_new_instance_in_child(self):
        parent = Injector(
            [
                {
                    "b": ("factory", lambda c: {"c": c}),
                    "c": ("value", "c-parent"),
                },
            ],
        )

        assert parent.get("b") == {"c": "c-parent"}

        child = parent.create_child([{"c": ("value", "c-child")}], ["b"])

        assert child.get("b") == {"c": "c-child"}
        assert parent.get("b") == {"c": "c-parent"}

    def test_forced_children_do_not_share_instances(self):
        parent = Injector([{"x": ("factory", lambda: object())}])
        x = parent.get("x")

        first = parent.create_child([], ["x"])
        second = parent.create_child([], ["x"])

        assert first.get("x") is not x
        assert second.get("x") is not x
        assert first.get("x") is not second.get("x")
        assert first.get("x") is first.get("x")

    def test_force_new_instance_using_provider_from_grand_parent(self):
        x = {}

        injector = Injector([{"x": ("value", x)}])
        grand_child = injector.create_child([]).create_child([], ["x"])

        assert grand_child.get("x") is x

    def test_force_unknown_name_raises(self):
        injector = Injector([])

        with pytest.raises(NoProviderForScopeError) as ctx:
            injector.create_child([], ["b"])

        assert str(ctx.value) == 'No provider for "b". Cannot use provider from the parent!'

    def test_force_new_instances_per_scope_tag(self):
        @scope("request")
        class Foo:
            def __init__(self):
                pass

        @scope("session")
        def create_bar():
            return {}

        injector = Injector([{"foo": ("type", Foo), "bar": ("factory", create_bar)}])
        foo = injector.get("foo")
        bar = injector.get("bar")

        session = injector.create_child([], ["session"])
        assert session.get("foo") is foo
        assert session.get("bar") is not bar

        request = injector.create_child([], ["request"])
        assert request.get("foo") is not foo
        assert request.get("bar") is bar

    def test_scope_tag_forces_every_tagged_provider(self):
        @scope("request")
        def make_a():
            return object()

        @scope("request", "session")
        def make_b():
            return object()

        injector = Injector([{"a": ("factory", make_a), "b": ("factory", make_b)}])
        a, b = injector.get("a"), injector.get("b")

        request = injector.create_child([], ["request"])

        assert request.get("a") is not a
        assert request.get("b") is not b

import pytest

from modbind import KEYED, Injector, Keyed, Positional, annotate, declared_only, infer_dependencies, inject, scope


def test_annotate_sets_names_on_last_argument():
    def fn(a, b):
        return None

    annotate("aa", "bb", fn)

    assert fn.__inject__ == ["aa", "bb"]


def test_annotate_returns_the_callable():
    def fn(a, b):
        return None

    assert annotate("aa", "bb", fn) is fn
    assert annotate(["aa", "bb", fn]) is fn


def test_annotate_class():
    class Foo:
        def __init__(self, a, b): ...

    assert annotate("aa", "bb", Foo) is Foo
    assert Foo.__inject__ == ["aa", "bb"]


def test_annotate_without_callable_raises():
    with pytest.raises(TypeError):
        annotate()


def test_inject_decorator():
    @inject("db", "config")
    def make_repo(database, settings):
        return (database, settings)

    assert make_repo.__inject__ == ["db", "config"]


def test_scope_decorator():
    @scope("request", "session")
    def make_ctx():
        return {}

    assert make_ctx.__scope__ == ("request", "session")


def test_infer_positional_parameter_names():
    def fn(one, two, *args, **kwargs):
        return None

    assert infer_dependencies(fn) == Positional(("one", "two"))


def test_infer_constructor_parameter_names():
    class Foo:
        def __init__(self, one, two): ...

    assert infer_dependencies(Foo) == Positional(("one", "two"))


def test_infer_class_without_constructor():
    class Car:
        def start(self):
            self.started = True

    assert infer_dependencies(Car) == Positional()


def test_infer_keyword_only_parameters_as_keyed():
    def fn(*, power, foo="bar"):
        return None

    assert infer_dependencies(fn) == Keyed(("power", "foo"))


def test_keyed_marker_in_annotation():
    def fn(**deps):
        return deps

    annotate(KEYED, "a", "b", fn)
    injector = Injector([{"a": ("value", 1)}])

    assert injector.invoke(fn) == {"a": 1}


def test_declared_only_skips_signature_inference():
    def with_default(a=5):
        return a

    injector = Injector(
        [
            {
                "a": ("value", 1),
                "declared": ("factory", annotate("a", lambda value: value)),
                "undeclared": ("factory", with_default),
            },
        ],
        name_provider=declared_only,
    )

    assert injector.get("declared") == 1
    assert injector.get("undeclared") == 5


def test_name_provider_is_inherited_by_child():
    def with_default(a=5):
        return a

    parent = Injector([{"a": ("value", 1)}], name_provider=declared_only)
    child = parent.create_child([{"b": ("factory", with_default)}])

    assert child.get("b") == 5


def test_custom_name_provider():
    def by_prefix(fn):
        return Positional(tuple(f"svc_{name}" for name in fn.__code__.co_varnames[: fn.__code__.co_argcount]))

    injector = Injector(
        [{"svc_db": ("value", "db"), "repo": ("factory", lambda db: ("repo", db))}],
        name_provider=by_prefix,
    )

    assert injector.get("repo") == ("repo", "db")

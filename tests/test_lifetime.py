import unittest
from unittest.mock import MagicMock

from wirebox import Container


class TestLifetimeControl(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_get_register_singleton_returns_same_instance(self):
        class A: ...

        self.cont.register(A)
        a1 = self.cont.get(A)
        a2 = self.cont.get(A)
        assert a2 is a1, "singleton should return the cached instance"

    def test_get_register_transient_returns_new_instances(self):
        class A: ...

        self.cont.register(A, transient=True)
        a1 = self.cont.get(A)
        a2 = self.cont.get(A)
        assert a2 is not a1, "transient should return new instances"
        assert type(a1) is type(a2)

    def test_singleton_factory_is_invoked_once(self):
        class A: ...

        factory = MagicMock(side_effect=A)
        self.cont.register_factory(A, factory)

        a1 = self.cont.get(A)
        a2 = self.cont.get(A)

        assert a1 is a2
        assert factory.call_count == 1

    def test_transient_factory_is_invoked_on_every_get(self):
        class A: ...

        factory = MagicMock(side_effect=A)
        self.cont.register_factory(A, factory, transient=True)

        a1 = self.cont.get(A)
        a2 = self.cont.get(A)

        assert a1 is not a2
        assert factory.call_count == 2

    def test_factory_is_called_without_arguments(self):
        factory = MagicMock(return_value="value")
        self.cont.register_factory("value", factory)

        self.cont.get("value")

        factory.assert_called_once_with()

    def test_is_transient(self):
        class A: ...

        class B: ...

        self.cont.register(A)
        self.cont.register(B, transient=True)

        assert not self.cont.is_transient(A)
        assert self.cont.is_transient(B)
        assert not self.cont.is_transient("unregistered")

    def test_transient_dependencies_are_rebuilt_per_dependent(self):
        class Connection: ...

        class Repo:
            def __init__(self, conn: Connection):
                self.conn = conn

        self.cont.register(Connection, transient=True)
        self.cont.register(Repo, transient=True)

        r1 = self.cont.get(Repo)
        r2 = self.cont.get(Repo)
        assert r1.conn is not r2.conn

    def test_singleton_dependency_is_shared_by_transient_dependents(self):
        class Logger: ...

        class Handler:
            def __init__(self, logger: Logger):
                self.logger = logger

        self.cont.register(Logger)
        self.cont.register(Handler, transient=True)

        h1 = self.cont.get(Handler)
        h2 = self.cont.get(Handler)
        assert h1 is not h2
        assert h1.logger is h2.logger is self.cont.get(Logger)


class TestReRegistration(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_re_registration_replaces_producer_before_first_get(self):
        class Logger: ...

        replacement = Logger()
        self.cont.register(Logger)
        self.cont.register_factory(Logger, lambda: replacement)

        assert self.cont.get(Logger) is replacement

    def test_re_registration_keeps_stale_singleton(self):
        class Logger: ...

        first = Logger()
        second = Logger()
        self.cont.register_factory(Logger, lambda: first)
        assert self.cont.get(Logger) is first

        self.cont.register_factory(Logger, lambda: second)

        # the cached singleton from the earlier registration is still served
        assert self.cont.get(Logger) is first

    def test_re_registration_as_transient_bypasses_stale_singleton(self):
        class Logger: ...

        self.cont.register(Logger)
        cached = self.cont.get(Logger)

        self.cont.register(Logger, transient=True)

        assert self.cont.get(Logger) is not cached
        assert self.cont.get(Logger) is not self.cont.get(Logger)

    def test_lifetime_follows_latest_registration(self):
        class Logger: ...

        self.cont.register_factory(Logger, Logger, transient=True)
        self.cont.register(Logger)

        assert not self.cont.is_transient(Logger)
        assert self.cont.get(Logger) is self.cont.get(Logger)

    def test_re_registration_keeps_original_position(self):
        class A: ...

        class B: ...

        self.cont.register(A)
        self.cont.register(B)
        self.cont.register(A, transient=True)

        assert list(self.cont.registrations) == [A, B]

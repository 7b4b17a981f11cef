"""Unit tests for the spec/value cache and coalesced spec resolution."""

import threading
import time

import pytest

from quocli.cache.inflight import InFlightRegistry
from quocli.cache.spec_cache import (
    DAY,
    SensitiveValueError,
    SpecCache,
    SpecResolver,
    fingerprint,
)
from quocli.cache.store import CacheUnavailableError, MemoryStore
from quocli.constants import DEMO_HELP, DEMO_SPECS
from quocli.domain.spec import MalformedSpecError, parse_spec
from quocli.models import CommandSpec, FieldSpec, SecretValue
from quocli.providers import StaticSpecParser

HELP = DEMO_HELP["curl"]


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FailingStore:
    """A store whose backing medium is gone."""

    def _fail(self, *args, **kwargs):
        raise CacheUnavailableError("disk on fire")

    get = set = delete = keys = list_expired = claim = release = _fail


def _curl() -> CommandSpec:
    return parse_spec(DEMO_SPECS["curl"])


class TestSpecLookup:
    def test_miss_then_hit(self):
        cache = SpecCache(MemoryStore())
        fp = fingerprint(HELP)
        assert cache.lookup(fp) is None
        cache.store(fp, _curl())
        assert cache.lookup(fp) == _curl()

    def test_changed_help_text_misses(self):
        cache = SpecCache(MemoryStore())
        cache.store(fingerprint(HELP), _curl())
        assert cache.lookup(fingerprint(HELP + "\n --new-flag")) is None

    def test_expired_entry_is_a_miss(self):
        """
        Given a spec stored 31 days ago with a 30 day TTL
        When lookup is called
        Then it is a miss even though the entry is still stored
        """
        clock = FakeClock()
        store = MemoryStore()
        cache = SpecCache(store, ttl=30 * DAY, clock=clock)
        fp = fingerprint(HELP)
        cache.store(fp, _curl())

        clock.now += 31 * DAY

        assert cache.lookup(fp) is None
        assert store.keys("spec:") == ["spec:" + fp]

    def test_malformed_spec_is_never_written(self):
        store = MemoryStore()
        cache = SpecCache(store)
        broken = _curl().model_copy(
            update={"fields": (FieldSpec(name="a"), FieldSpec(name="a"))}
        )
        with pytest.raises(MalformedSpecError):
            cache.store("abc", broken)
        assert store.keys() == []

    def test_sensitive_defaults_are_scrubbed(self):
        spec = CommandSpec(
            identity=("login",),
            fields=(FieldSpec(name="password", kind="password", default="hunter2"),),
        )
        store = MemoryStore()
        SpecCache(store).store("abc", spec)
        record = store.get("spec:abc")
        assert record is not None
        assert "hunter2" not in record.payload

    def test_invalidate_by_identity(self):
        cache = SpecCache(MemoryStore())
        cache.store("one", _curl())
        cache.store("two", parse_spec(DEMO_SPECS["rm"]))
        assert cache.invalidate(("curl",)) == 1
        assert cache.lookup("one") is None
        assert cache.lookup("two") is not None

    def test_purge_expired(self):
        clock = FakeClock()
        cache = SpecCache(MemoryStore(), ttl=DAY, values_ttl=DAY, clock=clock)
        cache.store("old", _curl())
        cache.store_values(_curl(), {"url": "https://x"})
        clock.now += 2 * DAY
        cache.store("new", _curl())
        assert cache.purge_expired() == 2
        assert cache.lookup("new") is not None


class TestValueCache:
    def test_values_round_trip_as_text(self):
        cache = SpecCache(MemoryStore())
        spec = _curl()
        saved = cache.store_values(spec, {"url": "https://x", "max-time": 5, "location": True})
        assert saved == 3
        values = cache.lookup_values(spec)
        assert values["url"] == "https://x"
        assert values["max-time"] == "5"
        assert values["location"] == "true"
        assert "silent" not in values

    def test_sensitive_value_is_refused(self):
        """
        Given a password field
        When store_value is called for it
        Then SensitiveValueError is raised and nothing is stored
        """
        store = MemoryStore()
        cache = SpecCache(store)
        field = FieldSpec(name="user", kind="password")
        with pytest.raises(SensitiveValueError):
            cache.store_value(("curl",), field, "me:pw")
        assert store.keys() == []

    def test_store_values_skips_sensitive(self):
        cache = SpecCache(MemoryStore())
        spec = _curl()
        cache.store_values(spec, {"url": "https://x", "user": SecretValue("me:pw")})
        assert "user" not in cache.lookup_values(spec)

    def test_empty_value_forgets_previous(self):
        cache = SpecCache(MemoryStore())
        spec = _curl()
        cache.store_values(spec, {"url": "https://x", "header": "A: b"})
        cache.store_values(spec, {"url": "https://x"})
        assert "header" not in cache.lookup_values(spec)

    def test_values_expire(self):
        clock = FakeClock()
        cache = SpecCache(MemoryStore(), values_ttl=DAY, clock=clock)
        cache.store_values(_curl(), {"url": "https://x"})
        clock.now += 2 * DAY
        assert cache.lookup_values(_curl()) == {}

    def test_clear_values_only_touches_one_command(self):
        cache = SpecCache(MemoryStore())
        curl, rm = _curl(), parse_spec(DEMO_SPECS["rm"])
        cache.store_values(curl, {"url": "https://x"})
        cache.store_values(rm, {"file": "/tmp/x"})
        assert cache.clear_values(("curl",)) > 0
        assert cache.lookup_values(curl) == {}
        assert cache.lookup_values(rm)["file"] == "/tmp/x"


class TestUnavailableStore:
    def test_everything_degrades(self):
        """
        Given a store that fails on every call
        When the cache is used
        Then lookups miss, writes are skipped and nothing raises
        """
        cache = SpecCache(FailingStore())
        spec = _curl()
        assert cache.lookup("abc") is None
        cache.store("abc", spec)
        assert cache.lookup_values(spec) == {}
        assert cache.store_values(spec, {"url": "https://x"}) == 1
        assert cache.clear_values(("curl",)) == 0
        assert cache.invalidate(("curl",)) == 0
        assert cache.purge_expired() == 0
        assert cache.claim("abc", 60) is True
        cache.release("abc")

    def test_resolver_still_parses(self):
        parser = StaticSpecParser()
        resolver = SpecResolver(SpecCache(FailingStore()))
        assert resolver.resolve(("curl",), HELP, parser.parse) == _curl()
        assert parser.calls == 1


class TestSpecResolver:
    def test_second_resolve_hits_cache(self):
        parser = StaticSpecParser()
        resolver = SpecResolver(SpecCache(MemoryStore()))
        first = resolver.resolve(("curl",), HELP, parser.parse)
        second = resolver.resolve(("curl",), HELP, parser.parse)
        assert first == second
        assert parser.calls == 1

    def test_refresh_reparses(self):
        parser = StaticSpecParser()
        resolver = SpecResolver(SpecCache(MemoryStore()))
        resolver.resolve(("curl",), HELP, parser.parse)
        resolver.resolve(("curl",), HELP, parser.parse, refresh=True)
        assert parser.calls == 2

    def test_malformed_parse_is_not_cached(self):
        store = MemoryStore()
        parser = StaticSpecParser({"bad": {"identity": ["bad"], "fields": [{"name": "a"}, {"name": "a"}]}})
        resolver = SpecResolver(SpecCache(store))
        with pytest.raises(MalformedSpecError):
            resolver.resolve(("bad",), "bad --help", parser.parse)
        assert store.keys("spec:") == []

    def test_help_text_warning_marks_dangerous(self):
        parser = StaticSpecParser({"tool": {"identity": ["tool"]}})
        cache = SpecCache(MemoryStore())
        resolver = SpecResolver(cache)
        help_text = "tool: rewrites history. This cannot be undone."
        spec = resolver.resolve(("tool",), help_text, parser.parse)
        assert spec.dangerous
        assert cache.lookup(fingerprint(help_text)).dangerous  # type: ignore[union-attr]

    def test_concurrent_misses_parse_once(self):
        """
        Given two threads resolving the same uncached help text
        When the parser is slow
        Then the parser runs once and both threads get the same spec
        """
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_parse(identity, help_text):
            calls.append(identity)
            started.set()
            release.wait(5)
            return parse_spec(DEMO_SPECS["curl"], identity)

        resolver = SpecResolver(SpecCache(MemoryStore()))
        results: list[CommandSpec] = []

        def resolve() -> None:
            results.append(resolver.resolve(("curl",), HELP, slow_parse))

        owner = threading.Thread(target=resolve)
        owner.start()
        assert started.wait(5)
        waiter = threading.Thread(target=resolve)
        waiter.start()
        time.sleep(0.1)
        release.set()
        owner.join(5)
        waiter.join(5)

        assert len(calls) == 1
        assert len(results) == 2
        assert results[0] == results[1]

    def test_other_process_marker_is_waited_on(self):
        """
        Given another process holds the in-progress marker for this help text
        When resolve is called
        Then it polls until the other process stores the spec and never parses
        """
        cache = SpecCache(MemoryStore())
        fp = fingerprint(HELP)
        assert cache.claim(fp, 60)
        spec = _curl()

        def other_process_finishes(_seconds: float) -> None:
            cache.store(fp, spec)

        parser = StaticSpecParser()
        resolver = SpecResolver(cache, sleep=other_process_finishes)

        assert resolver.resolve(("curl",), HELP, parser.parse) == spec
        assert parser.calls == 0

    def test_stale_marker_is_taken_over(self):
        cache = SpecCache(MemoryStore())
        assert cache.claim(fingerprint(HELP), 60)
        parser = StaticSpecParser()
        resolver = SpecResolver(cache, claim_timeout=0, sleep=lambda _s: None)
        resolver.resolve(("curl",), HELP, parser.parse)
        assert parser.calls == 1


class TestInFlightRegistry:
    def test_exception_reaches_owner_and_clears_key(self):
        registry = InFlightRegistry()

        def fail():
            raise ValueError("no")

        with pytest.raises(ValueError):
            registry.run("k", fail)
        assert not registry.in_flight("k")

    def test_waiter_gets_owner_result(self):
        registry = InFlightRegistry()
        started = threading.Event()
        release = threading.Event()
        results: list[int] = []

        def compute() -> int:
            started.set()
            release.wait(5)
            return 42

        owner = threading.Thread(target=lambda: results.append(registry.run("k", compute)))
        owner.start()
        assert started.wait(5)
        assert registry.in_flight("k")
        waiter = threading.Thread(target=lambda: results.append(registry.run("k", lambda: 0)))
        waiter.start()
        time.sleep(0.1)
        release.set()
        owner.join(5)
        waiter.join(5)
        assert results == [42, 42]

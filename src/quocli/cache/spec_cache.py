"""Content-addressed spec cache and last-used value cache.

Specs are keyed by the SHA-256 fingerprint of the help text that produced
them, so unchanged help output always hits and any change (a version bump, a
new flag) misses and forces a re-parse.  Values are keyed by command identity
and field name.  Both honour a TTL: an entry older than the TTL is a miss even
when it is still on disk.

Store failures never break a session: they are logged and treated as a miss
(or a skipped write).  Sensitive values are refused outright.
"""

import hashlib
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from quocli.cache.inflight import InFlightRegistry
from quocli.cache.store import CacheError, CacheUnavailableError, KeyValueStore, Record
from quocli.constants import DEFAULT_CLAIM_TIMEOUT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
from quocli.domain.builder import format_value, is_empty
from quocli.domain.guard import assess_danger, is_sensitive
from quocli.domain.spec import validate_spec
from quocli.models import CommandSpec, FieldSpec, FieldValue

logger = logging.getLogger(__name__)

SPEC_PREFIX = "spec:"
VALUE_PREFIX = "value:"

DAY = 24 * 60 * 60


class SensitiveValueError(CacheError):
    """Raised when something tries to cache the value of a sensitive field."""

    def __init__(self, field: str) -> None:
        super().__init__(f"refusing to cache value of sensitive field '{field}'")
        self.field = field


class CacheEntry(BaseModel):
    fingerprint: str
    identity: tuple[str, ...]
    spec: CommandSpec


def fingerprint(help_text: str) -> str:
    return hashlib.sha256(help_text.encode("utf-8")).hexdigest()


def _value_prefix(identity: Sequence[str]) -> str:
    return f"{VALUE_PREFIX}{quote(' '.join(identity), safe='')}:"


def _value_key(identity: Sequence[str], name: str) -> str:
    return _value_prefix(identity) + quote(name, safe="")


class SpecCache:
    def __init__(
        self,
        store: KeyValueStore,
        ttl: float = 30 * DAY,
        values_ttl: float = 30 * DAY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._values_ttl = values_ttl
        self._clock = clock

    def _fresh(self, key: str, ttl: float) -> Record | None:
        try:
            record = self._store.get(key)
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, treating %s as a miss: %s", key[:24], exc)
            return None
        if record is None:
            return None
        if self._clock() - record.created_at > ttl:
            logger.debug("Cache entry %s expired", key[:24])
            return None
        return record

    def _delete(self, key: str) -> None:
        try:
            self._store.delete(key)
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, could not delete %s: %s", key[:24], exc)

    # Specs

    def lookup(self, fp: str) -> CommandSpec | None:
        record = self._fresh(SPEC_PREFIX + fp, self._ttl)
        if record is None:
            return None
        try:
            return CacheEntry.model_validate_json(record.payload).spec
        except ValidationError as exc:
            logger.warning("Dropping unreadable cache entry %s: %s", fp[:12], exc)
            self._delete(SPEC_PREFIX + fp)
            return None

    def store(self, fp: str, spec: CommandSpec, identity: Sequence[str] | None = None) -> None:
        """Cache *spec* under *fp*. Malformed specs raise and are not written."""
        validate_spec(spec)
        entry = CacheEntry(
            fingerprint=fp,
            identity=tuple(identity or spec.identity),
            spec=_scrub(spec),
        )
        try:
            self._store.set(SPEC_PREFIX + fp, Record(entry.model_dump_json(), self._clock()))
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, spec for %s not cached: %s", spec.command_line, exc)

    def invalidate(self, identity: Sequence[str]) -> int:
        """Remove every cached spec produced for *identity*. Returns the count."""
        identity = tuple(identity)
        removed = 0
        try:
            keys = self._store.keys(SPEC_PREFIX)
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, nothing invalidated: %s", exc)
            return 0
        for key in keys:
            try:
                record = self._store.get(key)
            except CacheUnavailableError as exc:
                logger.warning("Cache unavailable while invalidating: %s", exc)
                continue
            if record is None:
                continue
            try:
                entry = CacheEntry.model_validate_json(record.payload)
            except ValidationError:
                self._delete(key)
                continue
            if entry.identity == identity:
                self._delete(key)
                removed += 1
        if removed:
            logger.info("Invalidated %d cached spec(s) for %s", removed, " ".join(identity))
        return removed

    def purge_expired(self, now: float | None = None) -> int:
        """Delete expired specs and values. Not needed for correctness."""
        now = self._clock() if now is None else now
        purged = 0
        for prefix, ttl in ((SPEC_PREFIX, self._ttl), (VALUE_PREFIX, self._values_ttl)):
            try:
                expired = self._store.list_expired(prefix, now - ttl)
            except CacheUnavailableError as exc:
                logger.warning("Cache unavailable, purge skipped: %s", exc)
                return purged
            for key in expired:
                self._delete(key)
                purged += 1
        return purged

    def claim(self, fp: str, stale_after: float) -> bool:
        try:
            return self._store.claim(SPEC_PREFIX + fp, stale_after)
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, parsing without a marker: %s", exc)
            return True

    def release(self, fp: str) -> None:
        try:
            self._store.release(SPEC_PREFIX + fp)
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, marker for %s not released: %s", fp[:12], exc)

    # Values

    def lookup_values(self, spec: CommandSpec) -> dict[str, str]:
        """Last used text for every non-sensitive field that has one."""
        values: dict[str, str] = {}
        for f in spec.fields:
            if is_sensitive(f):
                continue
            record = self._fresh(_value_key(spec.identity, f.name), self._values_ttl)
            if record is not None:
                values[f.name] = record.payload
        return values

    def store_value(self, identity: Sequence[str], field: FieldSpec, text: str) -> None:
        if is_sensitive(field):
            raise SensitiveValueError(field.name)
        try:
            self._store.set(_value_key(identity, field.name), Record(text, self._clock()))
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, value for %s not saved: %s", field.name, exc)

    def store_values(self, spec: CommandSpec, values: Mapping[str, FieldValue]) -> int:
        """Remember the non-sensitive values of a finished session."""
        saved = 0
        for f in spec.fields:
            if is_sensitive(f):
                continue
            value = values.get(f.name)
            if is_empty(value):
                self._delete(_value_key(spec.identity, f.name))
                continue
            self.store_value(spec.identity, f, format_value(value))
            saved += 1
        return saved

    def clear_values(self, identity: Sequence[str]) -> int:
        try:
            keys = self._store.keys(_value_prefix(identity))
        except CacheUnavailableError as exc:
            logger.warning("Cache unavailable, values not cleared: %s", exc)
            return 0
        for key in keys:
            self._delete(key)
        return len(keys)


def _scrub(spec: CommandSpec) -> CommandSpec:
    """Drop defaults of sensitive fields so no secret lands in the cache."""
    if not any(is_sensitive(f) and f.default is not None for f in spec.fields):
        return spec
    fields = tuple(
        f.model_copy(update={"default": None}) if is_sensitive(f) else f for f in spec.fields
    )
    return spec.model_copy(update={"fields": fields})


class SpecResolver:
    """Fingerprint help text and return its spec, parsing at most once.

    Concurrent misses on one fingerprint coalesce in-process through an
    ``InFlightRegistry`` and across processes through the store's
    in-progress marker: a process that cannot take the marker polls the
    cache until the owner has stored the spec or the marker goes stale.
    """

    def __init__(
        self,
        cache: SpecCache,
        registry: InFlightRegistry | None = None,
        claim_timeout: float = DEFAULT_CLAIM_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cache = cache
        self._registry = registry or InFlightRegistry()
        self._claim_timeout = claim_timeout
        self._poll_interval = poll_interval
        self._sleep = sleep

    def resolve(
        self,
        identity: Sequence[str],
        help_text: str,
        parse: Callable[[tuple[str, ...], str], CommandSpec],
        refresh: bool = False,
    ) -> CommandSpec:
        identity = tuple(identity)
        fp = fingerprint(help_text)
        if refresh:
            self._cache.invalidate(identity)
        else:
            spec = self._cache.lookup(fp)
            if spec is not None:
                logger.info("Using cached spec for %s", " ".join(identity))
                return spec
        return self._registry.run(
            fp, lambda: self._parse_once(fp, identity, help_text, parse, refresh)
        )

    def _parse_once(
        self,
        fp: str,
        identity: tuple[str, ...],
        help_text: str,
        parse: Callable[[tuple[str, ...], str], CommandSpec],
        refresh: bool,
    ) -> CommandSpec:
        if not refresh:
            spec = self._cache.lookup(fp)
            if spec is not None:
                return spec

        while not self._cache.claim(fp, self._claim_timeout):
            self._sleep(self._poll_interval)
            spec = self._cache.lookup(fp)
            if spec is not None:
                logger.info("Another process parsed %s", " ".join(identity))
                return spec

        try:
            logger.info("Parsing help text for %s", " ".join(identity))
            spec = assess_danger(parse(identity, help_text), help_text)
            validate_spec(spec)
            self._cache.store(fp, spec, identity)
            return spec
        finally:
            self._cache.release(fp)

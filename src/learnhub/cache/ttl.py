"""Central TTL policy for the distributed cache tier.

Each cache key is mapped to its L2 lifetime by prefix. Rules are loaded
once from settings into an immutable, longest-prefix-first tuple, so a
plain first-match scan returns the most specific rule ("courses:list"
wins over "courses:").

Queries may carry their own duration; a zero duration is the sentinel for
"use the policy", never an instruction to skip caching.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

from learnhub.config import Settings, settings

if TYPE_CHECKING:
    from learnhub.pipeline.requests import CacheableQuery

NO_DURATION = timedelta(0)


@dataclass(frozen=True)
class TtlRule:
    """A (prefix, duration) pair."""

    prefix: str
    duration: timedelta


class TtlResolver(Protocol):
    def resolve(self, key: str) -> timedelta: ...

    def resolve_for(self, query: "CacheableQuery") -> timedelta: ...


class CacheTtlPolicy:
    """Longest-matching-prefix TTL lookup with a default fallback."""

    def __init__(self, rules: Iterable[TtlRule], default: timedelta):
        if default <= NO_DURATION:
            raise ValueError("default TTL must be positive")
        deduped: dict[str, TtlRule] = {}
        for rule in rules:
            if not rule.prefix:
                raise ValueError("TTL rule prefix must not be empty")
            if rule.duration <= NO_DURATION:
                raise ValueError(f"TTL for prefix {rule.prefix!r} must be positive")
            # Later rules replace earlier ones with the same prefix
            deduped[rule.prefix] = rule
        self._rules: tuple[TtlRule, ...] = tuple(
            sorted(deduped.values(), key=lambda r: len(r.prefix), reverse=True)
        )
        self.default = default

    @property
    def rules(self) -> tuple[TtlRule, ...]:
        return self._rules

    def match(self, key: str) -> TtlRule | None:
        """Most specific rule for ``key``, or None."""
        if not key or not key.strip():
            return None
        for rule in self._rules:
            if key.startswith(rule.prefix):
                return rule
        return None

    def resolve(self, key: str) -> timedelta:
        """L2 duration for ``key``; the default when nothing matches."""
        rule = self.match(key)
        return rule.duration if rule is not None else self.default

    def resolve_for(self, query: "CacheableQuery") -> timedelta:
        """Duration for a cacheable query.

        A positive query-level duration is used as given. Zero (or a
        negative value) defers to the prefix table.
        """
        requested = query.l2_duration
        if requested is not None and requested > NO_DURATION:
            return requested
        return self.resolve(query.cache_key)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "CacheTtlPolicy":
        config = config or settings
        return cls(
            rules=[*default_rules(config), *override_rules(config.cache_ttl_overrides)],
            default=config.cache_default_l2,
        )


def default_rules(config: Settings) -> list[TtlRule]:
    """Built-in prefix table, one rule per entity/selector combination."""
    table: list[tuple[str, timedelta]] = [
        ("categories:tree", config.ttl_category_tree),
        ("categories:list", config.ttl_category_list),
        ("categories:id", config.ttl_category_by_id),
        ("categories:slug", config.ttl_category_by_slug),
        ("courses:list", config.ttl_course_list),
        ("courses:id", config.ttl_course_by_id),
        ("courses:slug", config.ttl_course_by_slug),
        ("courses:instructor", config.ttl_course_by_instructor),
        ("lessons:course", config.ttl_lesson_by_course),
        ("lessons:id", config.ttl_lesson_by_id),
        ("badges:p", config.ttl_badge_list),
        ("badges:id", config.ttl_badge_by_id),
        ("coupons:p", config.ttl_coupon_list),
        ("coupons:id", config.ttl_coupon_by_id),
        ("coupons:code", config.ttl_coupon_by_code),
        ("enrollments:list", config.ttl_enrollment_by_user),
        ("enrollments:id", config.ttl_enrollment_by_user),
        ("enrollments:user", config.ttl_enrollment_by_user),
        ("enrollments:course", config.ttl_enrollment_by_course),
        ("submissions:student", config.ttl_submission_by_student),
        ("submissions:id", config.ttl_submission_by_student),
        ("submissions:lesson", config.ttl_submission_by_student),
        ("certificates:user", config.ttl_certificate_by_user),
        ("certificates:id", config.ttl_certificate_by_user),
        ("livesessions:id", config.ttl_live_session),
        ("livesessions:lesson", config.ttl_live_session),
        ("livesessions:upcoming", config.ttl_live_session),
        ("orders:id", config.ttl_order_by_id),
        ("orders:list", config.ttl_order_list),
        ("orders:user", config.ttl_order_list),
        ("payments:id", config.ttl_payment_by_id),
        ("payments:order", config.ttl_payment_by_id),
        ("payments:conv", config.ttl_payment_by_id),
        ("payments:list", config.ttl_payment_list),
    ]
    return [TtlRule(prefix, duration) for prefix, duration in table]


def override_rules(overrides: Mapping[str, timedelta]) -> list[TtlRule]:
    return [TtlRule(prefix, duration) for prefix, duration in overrides.items()]


def derive_l1_ttl(l2_ttl: timedelta, config: Settings | None = None) -> timedelta:
    """L1 lifetime for an entry living ``l2_ttl`` in Redis (ratio, capped)."""
    config = config or settings
    return min(l2_ttl * config.cache_l1_ratio, config.cache_l1_max_ttl)

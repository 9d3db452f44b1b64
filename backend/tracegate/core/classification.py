"""Failure Classification — ordered rule registry and first-match-wins classifier.

Invariants:
    - A registry holds exactly one catch-all rule, and it is always last
    - The catch-all is always category `unknown` with status 500
    - Only the catch-all may accept the `unknown` category
    - Registries are immutable: extended() returns a new registry
    - classify() is deterministic and never raises, whatever was raised upstream

Design Decisions:
    - Matcher is set membership over category tags, not isinstance checks: handlers
      tag failures, the classifier never inspects exception types beyond TracegateError
    - No implicit precedence between categories: rule order is the only tie-breaker
      (ADR: a validation failure on an unauthenticated request is whichever rule comes first)
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from tracegate.core.errors import FailureCategory, TracegateError

UNKNOWN = FailureCategory.UNKNOWN.value


class RegistryConfigurationError(ValueError):
    """Rule registry violates its structural invariants."""


@dataclass(frozen=True)
class ClassificationRule:
    """Maps one or more failure categories to a response status, title and tag."""
    category: str
    status: int
    title: str
    accepts: frozenset[str] = field(default_factory=frozenset)
    catch_all: bool = False

    def matches(self, failure_category: str) -> bool:
        return self.catch_all or failure_category in self.accepts


def rule(
    category: FailureCategory | str, status: int, title: str, *aliases: str,
) -> ClassificationRule:
    """Build a rule that accepts its own category plus any aliases."""
    tag = category.value if isinstance(category, FailureCategory) else category
    return ClassificationRule(
        category=tag, status=status, title=title,
        accepts=frozenset((tag, *aliases)),
    )


CATCH_ALL = ClassificationRule(
    category=UNKNOWN, status=500, title="Internal Server Error", catch_all=True,
)


class ClassificationRegistry:
    """Immutable, ordered collection of classification rules."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[ClassificationRule]):
        rules = tuple(rules)
        _validate(rules)
        self._rules = rules

    @property
    def rules(self) -> tuple[ClassificationRule, ...]:
        return self._rules

    @property
    def catch_all(self) -> ClassificationRule:
        return self._rules[-1]

    def extended(self, *rules: ClassificationRule) -> "ClassificationRegistry":
        """New registry with `rules` placed ahead of the existing ones."""
        return ClassificationRegistry((*rules, *self._rules))

    def __iter__(self) -> Iterator[ClassificationRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)


def _validate(rules: tuple[ClassificationRule, ...]) -> None:
    if not rules:
        raise RegistryConfigurationError("registry must contain at least a catch-all rule")
    catch_alls = [r for r in rules if r.catch_all]
    if len(catch_alls) != 1:
        raise RegistryConfigurationError(
            f"registry must contain exactly one catch-all rule, found {len(catch_alls)}",
        )
    if not rules[-1].catch_all:
        raise RegistryConfigurationError("catch-all rule must be the last rule")
    catch_all = rules[-1]
    if catch_all.category != UNKNOWN or catch_all.status != 500:
        raise RegistryConfigurationError(
            f"catch-all rule must be '{UNKNOWN}' with status 500, "
            f"got '{catch_all.category}' with {catch_all.status!r}",
        )
    for r in rules:
        if not isinstance(r.status, int) or not 400 <= r.status <= 599:
            raise RegistryConfigurationError(
                f"rule '{r.category}' has non-error status {r.status!r}",
            )
        if not r.catch_all and UNKNOWN in r.accepts:
            raise RegistryConfigurationError(
                f"rule '{r.category}' accepts '{UNKNOWN}', reserved for the catch-all",
            )


def default_registry() -> ClassificationRegistry:
    """Built-in taxonomy, most specific first, catch-all last."""
    return ClassificationRegistry([
        rule(FailureCategory.VALIDATION, 400, "Validation Failed"),
        rule(FailureCategory.NOT_AUTHENTICATED, 401, "Not Authenticated"),
        rule(FailureCategory.NOT_AUTHORIZED, 403, "Not Authorized"),
        rule(FailureCategory.NOT_FOUND, 404, "Not Found"),
        rule(FailureCategory.METHOD_NOT_ALLOWED, 405, "Method Not Allowed"),
        rule(FailureCategory.CONFLICT, 409, "Conflict"),
        rule(FailureCategory.BUSINESS_RULE, 422, "Business Rule Violation"),
        rule(FailureCategory.DEPENDENCY_UNAVAILABLE, 503, "Service Unavailable"),
        CATCH_ALL,
    ])


class FailureClassifier:
    """Walks the registry and returns the first rule accepting a failure's category."""

    def __init__(self, registry: ClassificationRegistry):
        self.registry = registry

    def category_of(self, failure: BaseException) -> str:
        if not isinstance(failure, TracegateError):
            return UNKNOWN
        category = failure.category
        if not isinstance(category, str) or not category:
            return UNKNOWN
        return category

    def classify(self, failure: BaseException) -> ClassificationRule:
        category = self.category_of(failure)
        for candidate in self.registry:
            if candidate.matches(category):
                return candidate
        return self.registry.catch_all

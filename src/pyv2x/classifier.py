"""Classification of ledger write failures.

A ledger rejects a write both when it is genuinely invalid and when an
equivalent state transition was already applied. Only the backend's error
vocabulary can tell the two apart, so the mapping is data: a list of
:class:`ClassifierRule` evaluated in order, first match wins, default
:attr:`FailureKind.GENUINE`.

Swapping ledger backends means swapping the rule list, not the callers.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

#: Wildcard for :attr:`ClassifierRule.operation` / :attr:`ClassifierRule.code`.
ANY = "*"


class FailureKind(StrEnum):
    IDEMPOTENT = "idempotent"
    GENUINE = "genuine"


class ErrorClassifier(Protocol):
    """Structural classifier interface used by the ledger gateway."""

    def classify(self, operation: str, code: str, reason: str) -> FailureKind: ...


@dataclass(frozen=True)
class ClassifierRule:
    """Map ``(operation, code[, reason substring])`` to a failure kind."""

    operation: str
    code: str
    kind: FailureKind
    reason_contains: str | None = None

    def matches(self, operation: str, code: str, reason: str) -> bool:
        if self.operation != ANY and self.operation != operation:
            return False
        if self.code != ANY and self.code.upper() != code.upper():
            return False
        if self.reason_contains is not None and self.reason_contains.lower() not in reason.lower():
            return False
        return True


class RuleClassifier:
    """Ordered rule list classifier."""

    def __init__(self, rules: Iterable[ClassifierRule], *, default: FailureKind = FailureKind.GENUINE) -> None:
        self._rules = tuple(rules)
        self._default = default

    @property
    def rules(self) -> tuple[ClassifierRule, ...]:
        return self._rules

    def classify(self, operation: str, code: str, reason: str) -> FailureKind:
        for rule in self._rules:
            if rule.matches(operation, code, reason):
                return rule.kind
        return self._default

    def with_rules(self, *rules: ClassifierRule) -> RuleClassifier:
        """Return a classifier whose *rules* take precedence over the current ones."""
        return RuleClassifier((*rules, *self._rules), default=self._default)


#: EVM contract vocabulary. The V2XAuth contract reverts when an identity
#: hash is registered twice, so a reverted registration means "already
#: registered". Addresses are validated before submission, which leaves no
#: other revert cause for that call.
EVM_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(operation="register_identity", code="CALL_EXCEPTION", kind=FailureKind.IDEMPOTENT),
)


def evm_classifier() -> RuleClassifier:
    """Default classifier for the EVM backend."""
    return RuleClassifier(EVM_RULES)

from __future__ import annotations

from pyv2x.classifier import ANY, ClassifierRule, FailureKind, RuleClassifier, evm_classifier


def test_evm_classifier_absorbs_duplicate_registration_only() -> None:
    classifier = evm_classifier()

    assert classifier.classify("register_identity", "CALL_EXCEPTION", "") == FailureKind.IDEMPOTENT
    assert classifier.classify("register_identity", "call_exception", "") == FailureKind.IDEMPOTENT
    assert classifier.classify("register_identity", "INSUFFICIENT_FUNDS", "") == FailureKind.GENUINE
    assert classifier.classify("revoke_identity", "CALL_EXCEPTION", "") == FailureKind.GENUINE
    assert classifier.classify("charge_account", "CALL_EXCEPTION", "") == FailureKind.GENUINE


def test_rules_match_in_order_with_reason_filter() -> None:
    classifier = RuleClassifier(
        [
            ClassifierRule(operation=ANY, code="E_DUP", kind=FailureKind.IDEMPOTENT, reason_contains="already"),
            ClassifierRule(operation=ANY, code=ANY, kind=FailureKind.GENUINE),
        ],
        default=FailureKind.IDEMPOTENT,
    )

    assert classifier.classify("charge_account", "E_DUP", "Already applied") == FailureKind.IDEMPOTENT
    assert classifier.classify("charge_account", "E_DUP", "bad input") == FailureKind.GENUINE


def test_default_applies_when_no_rule_matches() -> None:
    assert RuleClassifier([]).classify("x", "y", "z") == FailureKind.GENUINE
    assert RuleClassifier([], default=FailureKind.IDEMPOTENT).classify("x", "y", "z") == FailureKind.IDEMPOTENT


def test_with_rules_gives_new_rules_precedence() -> None:
    base = evm_classifier()
    override = base.with_rules(ClassifierRule(operation="register_identity", code=ANY, kind=FailureKind.GENUINE))

    assert override.classify("register_identity", "CALL_EXCEPTION", "") == FailureKind.GENUINE
    assert base.classify("register_identity", "CALL_EXCEPTION", "") == FailureKind.IDEMPOTENT
    assert len(override.rules) == len(base.rules) + 1

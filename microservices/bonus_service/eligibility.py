"""
Bonus Eligibility Rules

An ordered set of named, pure predicates over (template, context). Every
rule is evaluated, so a denial carries all failing reasons. A template field
left unset means the rule does not apply.

Rule sets are plain values: whoever builds the engine owns one and may add
or remove rules by name at runtime.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .models import (
    KYC_TIER_ORDER,
    BonusTemplate,
    EligibilityContext,
    EligibilityResult,
    as_utc,
)

logger = logging.getLogger(__name__)

RulePredicate = Callable[[BonusTemplate, EligibilityContext], bool]
RuleMessage = Callable[[BonusTemplate, EligibilityContext], str]

SELECTION_TYPES = {"selection", "combo", "bundle"}
FIRST_DEPOSIT_TYPES = {"first_deposit", "welcome"}


@dataclass(frozen=True)
class ValidationRule:
    """Named predicate plus the denial message produced when it fails"""
    name: str
    check: RulePredicate
    message: RuleMessage


def _num(value: float) -> str:
    """Render amounts the way users read them (100, not 100.0)"""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def _join(values: Optional[Iterable[str]], sep: str) -> str:
    return sep.join(values or [])


# ====================
# Built-in Rules
# ====================

def _check_date_range(t: BonusTemplate, c: EligibilityContext) -> bool:
    now = c.now()
    if t.valid_from and now < as_utc(t.valid_from):
        return False
    if t.valid_until and now > as_utc(t.valid_until):
        return False
    return True


def _date_range_message(t: BonusTemplate, c: EligibilityContext) -> str:
    if t.valid_from and c.now() < as_utc(t.valid_from):
        return f"Bonus starts on {as_utc(t.valid_from).date().isoformat()}"
    return "Bonus has expired"


def _check_tier(t: BonusTemplate, c: EligibilityContext) -> bool:
    if not t.eligible_tiers:
        return True
    if not c.user_tier:
        return False
    return c.user_tier in t.eligible_tiers


def _check_kyc_tier(t: BonusTemplate, c: EligibilityContext) -> bool:
    if not t.min_kyc_tier:
        return True
    user_rank = KYC_TIER_ORDER.index(c.kyc_tier) if c.kyc_tier else 0
    return user_rank >= KYC_TIER_ORDER.index(t.min_kyc_tier)


def _check_country(t: BonusTemplate, c: EligibilityContext) -> bool:
    if not c.country:
        return True
    # Deny list wins over allow list
    if c.country in t.excluded_countries:
        return False
    if t.eligible_countries and c.country not in t.eligible_countries:
        return False
    return True


def _selection_count(c: EligibilityContext) -> int:
    if c.selection_count is not None:
        return c.selection_count
    return len(c.selections or [])


def _check_selection_count(t: BonusTemplate, c: EligibilityContext) -> bool:
    if t.type not in SELECTION_TYPES:
        return True
    count = _selection_count(c)
    if t.min_selections and count < t.min_selections:
        return False
    if t.max_selections and count > t.max_selections:
        return False
    return True


def _selection_count_message(t: BonusTemplate, c: EligibilityContext) -> str:
    count = _selection_count(c)
    if t.min_selections and count < t.min_selections:
        return f"Minimum {t.min_selections} selections required (you have {count})"
    return f"Maximum {t.max_selections} selections allowed (you have {count})"


def _out_of_range_selection(t: BonusTemplate, c: EligibilityContext) -> Optional[str]:
    for selection in c.selections or []:
        if t.min_selection_value is not None and selection.value < t.min_selection_value:
            return f"Selection value {_num(selection.value)} is below minimum {_num(t.min_selection_value)}"
        if t.max_selection_value is not None and selection.value > t.max_selection_value:
            return f"Selection value {_num(selection.value)} exceeds maximum {_num(t.max_selection_value)}"
    return None


def _check_selection_value_range(t: BonusTemplate, c: EligibilityContext) -> bool:
    if t.type not in SELECTION_TYPES or not c.selections:
        return True
    return _out_of_range_selection(t, c) is None


def selections_total(t: BonusTemplate, c: EligibilityContext) -> Optional[float]:
    """
    Aggregate selection value.

    Combo selections multiply (combined odds); every other selection type
    sums (cart total). A caller-supplied total takes precedence.
    """
    if c.selections_total is not None:
        return c.selections_total
    if not c.selections:
        return None
    if t.type == "combo":
        total = 1.0
        for selection in c.selections:
            total *= selection.value
        return total
    return float(sum(selection.value for selection in c.selections))


def _check_selection_total_range(t: BonusTemplate, c: EligibilityContext) -> bool:
    if t.type not in SELECTION_TYPES:
        return True
    total = selections_total(t, c)
    if total is None:
        return True
    if t.min_total_value is not None and total < t.min_total_value:
        return False
    if t.max_total_value is not None and total > t.max_total_value:
        return False
    return True


def _selection_total_message(t: BonusTemplate, c: EligibilityContext) -> str:
    total = selections_total(t, c)
    if total is not None and t.min_total_value is not None and total < t.min_total_value:
        return f"Combined total {total:.2f} is below minimum {_num(t.min_total_value)}"
    if total is not None and t.max_total_value is not None and total > t.max_total_value:
        return f"Combined total {total:.2f} exceeds maximum {_num(t.max_total_value)}"
    return "Combined total out of range"


def _check_activity_category(t: BonusTemplate, c: EligibilityContext) -> bool:
    if not t.eligible_categories or not c.activity_category:
        return True
    return c.activity_category in t.eligible_categories


def _check_total_uses(t: BonusTemplate, c: EligibilityContext) -> bool:
    if not t.max_uses_total:
        return True
    return t.current_uses_total < t.max_uses_total


def default_rules() -> List[ValidationRule]:
    """The built-in rules in evaluation order"""
    return [
        ValidationRule(
            "is_active",
            lambda t, c: t.is_active is True,
            lambda t, c: "Bonus is not active",
        ),
        ValidationRule("date_range", _check_date_range, _date_range_message),
        ValidationRule(
            "currency",
            lambda t, c: not c.currency or not t.supported_currencies or c.currency in t.supported_currencies,
            lambda t, c: f"Currency {c.currency} not supported. Supported: {_join(t.supported_currencies, ', ')}",
        ),
        ValidationRule(
            "min_deposit",
            # No deposit in the context means there is nothing to check
            lambda t, c: not t.min_deposit or not c.deposit_amount or c.deposit_amount >= t.min_deposit,
            lambda t, c: f"Minimum deposit of {_num(t.min_deposit)} {t.currency} required",
        ),
        ValidationRule(
            "tier",
            _check_tier,
            lambda t, c: f"Required tier: {_join(t.eligible_tiers, ' or ')}",
        ),
        ValidationRule(
            "kyc_tier",
            _check_kyc_tier,
            lambda t, c: f"KYC tier {t.min_kyc_tier} or higher required",
        ),
        ValidationRule(
            "country",
            _check_country,
            lambda t, c: f"Country {c.country} not eligible",
        ),
        ValidationRule(
            "verification",
            lambda t, c: not t.require_verification or c.is_verified is True,
            lambda t, c: "Account verification required",
        ),
        ValidationRule(
            "account_age",
            lambda t, c: (
                not t.min_account_age_days
                or c.account_age_days is None
                or c.account_age_days >= t.min_account_age_days
            ),
            lambda t, c: f"Account must be at least {t.min_account_age_days} days old",
        ),
        ValidationRule(
            "first_deposit",
            lambda t, c: t.type not in FIRST_DEPOSIT_TYPES or c.is_first_deposit is True,
            lambda t, c: "Only available for first deposit",
        ),
        ValidationRule(
            "first_purchase",
            lambda t, c: t.type != "first_purchase" or c.is_first_purchase is True,
            lambda t, c: "Only available for first purchase",
        ),
        ValidationRule("selection_count", _check_selection_count, _selection_count_message),
        ValidationRule(
            "selection_value_range",
            _check_selection_value_range,
            lambda t, c: _out_of_range_selection(t, c) or "Selection value out of range",
        ),
        ValidationRule("selection_total_range", _check_selection_total_range, _selection_total_message),
        ValidationRule(
            "activity_category",
            _check_activity_category,
            lambda t, c: f"Activity category not eligible. Allowed: {_join(t.eligible_categories, ', ')}",
        ),
        ValidationRule(
            "total_uses",
            _check_total_uses,
            lambda t, c: "Bonus no longer available (limit reached)",
        ),
    ]


# ====================
# Rule Set
# ====================

class RuleSet:
    """Ordered, mutable collection of validation rules"""

    def __init__(self, rules: Optional[Iterable[ValidationRule]] = None):
        self._rules: List[ValidationRule] = list(rules or [])

    def evaluate(self, template: BonusTemplate, context: EligibilityContext) -> EligibilityResult:
        """Run every rule; the result is eligible only when no rule failed."""
        reasons = []
        for rule in self._rules:
            if not rule.check(template, context):
                reasons.append(rule.message(template, context))

        if reasons:
            logger.debug(f"Template {template.code} denied for {context.user_id}: {reasons}")
            return EligibilityResult.denied(*reasons, template=template)
        return EligibilityResult.ok(template)

    def check_many(
        self, templates: Iterable[BonusTemplate], context: EligibilityContext
    ) -> List[EligibilityResult]:
        """Evaluate several templates, highest priority first"""
        results = [self.evaluate(t, context) for t in templates]
        return sorted(results, key=lambda r: r.template.priority, reverse=True)

    def get_eligible(
        self, templates: Iterable[BonusTemplate], context: EligibilityContext
    ) -> List[EligibilityResult]:
        return [r for r in self.check_many(templates, context) if r.eligible]

    def add_rule(self, rule: ValidationRule) -> None:
        """Append a rule, replacing any existing rule of the same name in place"""
        for index, existing in enumerate(self._rules):
            if existing.name == rule.name:
                self._rules[index] = rule
                return
        self._rules.append(rule)

    def remove_rule(self, name: str) -> bool:
        for index, existing in enumerate(self._rules):
            if existing.name == name:
                del self._rules[index]
                return True
        return False

    def get_rule_names(self) -> List[str]:
        return [rule.name for rule in self._rules]

    def __len__(self) -> int:
        return len(self._rules)


def create_default_rule_set() -> RuleSet:
    return RuleSet(default_rules())


__all__ = [
    "ValidationRule",
    "RuleSet",
    "default_rules",
    "create_default_rule_set",
    "selections_total",
]

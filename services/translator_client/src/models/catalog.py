"""Subscription tier and language catalogs."""

import math
from dataclasses import dataclass, field
from enum import Enum


class UserTier(str, Enum):
    """Subscription tiers with different monthly translation limits."""

    FREE = "free"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


@dataclass(frozen=True)
class TierPlan:
    """Presentation and pricing data for a subscription tier."""

    tier: UserTier
    name: str
    limit: float  # math.inf for unlimited
    price: int  # ZAR per month
    features: list[str] = field(default_factory=list)

    @property
    def is_paid(self) -> bool:
        return self.price > 0

    @property
    def is_unlimited(self) -> bool:
        return math.isinf(self.limit)

    @property
    def limit_label(self) -> str:
        return "unlimited" if self.is_unlimited else str(int(self.limit))


SUBSCRIPTION_TIERS: dict[UserTier, TierPlan] = {
    UserTier.FREE: TierPlan(
        tier=UserTier.FREE,
        name="Free",
        limit=5,
        price=0,
        features=["5 translations/month", "All languages", "Basic support", "Standard processing"],
    ),
    UserTier.PROFESSIONAL: TierPlan(
        tier=UserTier.PROFESSIONAL,
        name="Professional",
        limit=20,
        price=299,
        features=[
            "20 translations/month",
            "All languages",
            "Priority support",
            "Fast processing",
            "Email notifications",
        ],
    ),
    UserTier.ENTERPRISE: TierPlan(
        tier=UserTier.ENTERPRISE,
        name="Enterprise",
        limit=math.inf,
        price=999,
        features=[
            "Unlimited translations",
            "All languages",
            "24/7 support",
            "Instant processing",
            "Dedicated manager",
            "API access",
        ],
    ),
}


def get_plan(tier: UserTier | str) -> TierPlan:
    """Look up the plan for a tier.

    Raises:
        ValueError: If the tier is unknown
    """
    return SUBSCRIPTION_TIERS[UserTier(tier)]


@dataclass(frozen=True)
class Language:
    """A language the translation service accepts."""

    code: str
    name: str
    source_only: bool = False


AUTO_DETECT = "auto"

LANGUAGES: list[Language] = [
    Language(AUTO_DETECT, "Auto-detect", source_only=True),
    Language("en", "English"),
    Language("af", "Afrikaans"),
    Language("zu", "isiZulu"),
    Language("xh", "isiXhosa"),
    Language("st", "Sesotho"),
    Language("tn", "Setswana"),
    Language("ss", "siSwati"),
    Language("ts", "Xitsonga"),
    Language("ve", "Tshivenda"),
    Language("nr", "isiNdebele"),
    Language("nso", "Sepedi"),
    Language("fr", "French"),
    Language("pt", "Portuguese"),
]

_LANGUAGES_BY_CODE = {language.code: language for language in LANGUAGES}


def is_valid_source(code: str) -> bool:
    return code in _LANGUAGES_BY_CODE


def is_valid_target(code: str) -> bool:
    language = _LANGUAGES_BY_CODE.get(code)
    return language is not None and not language.source_only

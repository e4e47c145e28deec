"""Client-side domain models."""

from .catalog import LANGUAGES, SUBSCRIPTION_TIERS, Language, TierPlan, UserTier, get_plan
from .job import (
    Cancelled,
    Done,
    EstimatedProgress,
    Failed,
    Idle,
    JobMode,
    JobPhase,
    JobState,
    Progress,
    ReportedProgress,
    SelectedFile,
    Translating,
    Uploading,
)
from .payment import PaymentIntent, PaymentState, RedirectOutcome

__all__ = [
    "LANGUAGES",
    "SUBSCRIPTION_TIERS",
    "Cancelled",
    "Done",
    "EstimatedProgress",
    "Failed",
    "Idle",
    "JobMode",
    "JobPhase",
    "JobState",
    "Language",
    "PaymentIntent",
    "PaymentState",
    "Progress",
    "RedirectOutcome",
    "ReportedProgress",
    "SelectedFile",
    "TierPlan",
    "Translating",
    "Uploading",
    "UserTier",
    "get_plan",
]

"""Payment intent state."""

from dataclasses import dataclass
from enum import Enum


class PaymentState(Enum):
    """Phase of an attempted subscription upgrade."""

    NONE = "none"
    AWAITING_EXTERNAL_ACTION = "awaiting_external_action"
    AWAITING_VERIFICATION = "awaiting_verification"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentIntent:
    """The tier being purchased and where the purchase stands."""

    state: PaymentState = PaymentState.NONE
    tier: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.state is not PaymentState.NONE and self.tier is None and self.state is not PaymentState.FAILED:
            raise ValueError(f"Payment state {self.state.value} requires a tier")


class RedirectOutcome(Enum):
    """Outcome the payment provider reports when it sends the user back."""

    SUCCESS = "success"
    CANCELLED = "cancelled"

"""Referral ledger errors"""


class ReferralError(Exception):
    """Base class for ledger failures"""

    pass


class InvalidCode(ReferralError):
    """Code does not exist or is no longer active

    `reason` is "not_found" or "inactive"; both surface to the customer as
    the same message.
    """

    def __init__(self, code: str, reason: str = "not_found"):
        self.code = code
        self.reason = reason
        super().__init__(f"Invalid or inactive referral code: {code} ({reason})")


class TransientFailure(ReferralError):
    """Storage hiccup or timeout - safe to retry"""

    pass

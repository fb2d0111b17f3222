"""Typed errors raised by the settlement and payout services.

The request errors are ``ValueError`` subclasses so routers can keep mapping
``ValueError`` to 400 and single out the cases that need another status.
"""


class InvalidMonthError(ValueError):
    def __init__(self, month: str):
        self.month = month
        super().__init__(f"Invalid month '{month}', expected YYYY-MM")


class PayoutsAlreadyGeneratedError(ValueError):
    def __init__(self, restaurant_id: object, month: str, latest_month: str | None = None):
        self.restaurant_id = restaurant_id
        self.month = month
        self.latest_month = latest_month
        if latest_month is not None:
            message = (
                f"Payouts already generated through {latest_month} for restaurant "
                f"{restaurant_id}; cannot generate {month}"
            )
        else:
            message = f"Payouts already generated for restaurant {restaurant_id} month {month}"
        super().__init__(message)


class DistributionValidationError(ValueError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class RailSubmissionError(Exception):
    """A disbursement rail rejected or could not receive a submission."""

    def __init__(self, message: str, code: str | None = None, retryable: bool = False):
        self.code = code
        self.retryable = retryable
        super().__init__(message)


class PayoutNotResolvableError(ValueError):
    def __init__(self, payout_id: object, status: str):
        self.payout_id = payout_id
        self.status = status
        super().__init__(f"Payout {payout_id} is {status}; only processing payouts can be resolved")

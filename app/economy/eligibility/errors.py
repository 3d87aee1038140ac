class EligibilityError(Exception):
    pass


class EligibilityNotFoundError(EligibilityError):
    pass


class EligibilityExpiredError(EligibilityError):
    pass


class EligibilityUsedError(EligibilityError):
    pass


class WalletRequiredError(EligibilityError):
    pass


class TransferWindowClosedError(EligibilityError):
    def __init__(self, carried_daily_count: int = 0) -> None:
        super().__init__("no guest eligibility is still transferable")
        self.carried_daily_count = carried_daily_count

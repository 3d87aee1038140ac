class GameSessionError(Exception):
    pass


class AdmissionError(GameSessionError):
    pass


class AlreadyActiveError(AdmissionError):
    def __init__(self, active_session_id: str | None = None) -> None:
        super().__init__(active_session_id)
        self.active_session_id = active_session_id


class DailyLimitReachedError(AdmissionError):
    def __init__(self, daily_cap: int) -> None:
        super().__init__(daily_cap)
        self.daily_cap = daily_cap


class OnCooldownError(AdmissionError):
    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(retry_after_seconds)
        self.retry_after_seconds = retry_after_seconds


class UnknownCategoryError(GameSessionError):
    pass


class NotEnoughQuestionsError(GameSessionError):
    pass


class SessionNotFoundError(GameSessionError):
    pass


class SessionBusyError(GameSessionError):
    pass


class SessionAlreadyFinalizedError(GameSessionError):
    pass


class InvalidQuestionIndexError(GameSessionError):
    pass


class InvalidAnswerOptionError(GameSessionError):
    pass

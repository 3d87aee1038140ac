from __future__ import annotations

from fastapi import HTTPException

from app.economy.catalog.errors import CatalogItemNotFoundError, NoStockAvailableError
from app.economy.eligibility.errors import (
    EligibilityExpiredError,
    EligibilityNotFoundError,
    EligibilityUsedError,
    TransferWindowClosedError,
    WalletRequiredError,
)
from app.economy.forge.errors import (
    ForgeInputsBusyError,
    ForgeNotReadyError,
    ForgeOperationNotFoundError,
    SeasonalForgeClosedError,
    UnknownForgeCategoryError,
)
from app.economy.mint.errors import MintOperationNotFoundError
from app.game.questions.errors import QuestionNotFoundError
from app.game.sessions.errors import (
    AlreadyActiveError,
    DailyLimitReachedError,
    InvalidAnswerOptionError,
    InvalidQuestionIndexError,
    NotEnoughQuestionsError,
    OnCooldownError,
    SessionAlreadyFinalizedError,
    SessionBusyError,
    SessionNotFoundError,
    UnknownCategoryError,
)

ERROR_RESPONSES: dict[type[Exception], tuple[int, str]] = {
    AlreadyActiveError: (409, "E_SESSION_ALREADY_ACTIVE"),
    DailyLimitReachedError: (429, "E_DAILY_LIMIT"),
    OnCooldownError: (429, "E_ON_COOLDOWN"),
    UnknownCategoryError: (404, "E_UNKNOWN_CATEGORY"),
    NotEnoughQuestionsError: (409, "E_NOT_ENOUGH_QUESTIONS"),
    SessionNotFoundError: (404, "E_SESSION_NOT_FOUND"),
    SessionBusyError: (409, "E_SESSION_BUSY"),
    SessionAlreadyFinalizedError: (409, "E_SESSION_FINALIZED"),
    InvalidQuestionIndexError: (422, "E_INVALID_QUESTION_INDEX"),
    InvalidAnswerOptionError: (422, "E_INVALID_ANSWER_OPTION"),
    EligibilityNotFoundError: (404, "E_ELIGIBILITY_NOT_FOUND"),
    EligibilityExpiredError: (410, "E_ELIGIBILITY_EXPIRED"),
    EligibilityUsedError: (409, "E_ELIGIBILITY_USED"),
    WalletRequiredError: (403, "E_WALLET_REQUIRED"),
    TransferWindowClosedError: (410, "E_TRANSFER_WINDOW_CLOSED"),
    NoStockAvailableError: (409, "E_NO_STOCK"),
    CatalogItemNotFoundError: (404, "E_CATALOG_ITEM_NOT_FOUND"),
    MintOperationNotFoundError: (404, "E_MINT_OPERATION_NOT_FOUND"),
    ForgeNotReadyError: (409, "E_FORGE_NOT_READY"),
    ForgeInputsBusyError: (409, "E_FORGE_INPUTS_BUSY"),
    SeasonalForgeClosedError: (403, "E_SEASONAL_FORGE_CLOSED"),
    ForgeOperationNotFoundError: (404, "E_FORGE_OPERATION_NOT_FOUND"),
    UnknownForgeCategoryError: (422, "E_FORGE_CATEGORY_REQUIRED"),
    QuestionNotFoundError: (404, "E_QUESTION_NOT_FOUND"),
}


def to_http_exception(exc: Exception) -> HTTPException:
    for exc_type in type(exc).__mro__:
        mapped = ERROR_RESPONSES.get(exc_type)
        if mapped is None:
            continue
        status_code, code = mapped
        detail: dict[str, object] = {"code": code}
        headers = None
        if isinstance(exc, OnCooldownError):
            detail["retry_after_seconds"] = exc.retry_after_seconds
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        elif isinstance(exc, AlreadyActiveError) and exc.active_session_id:
            detail["active_session_id"] = exc.active_session_id
        elif isinstance(exc, DailyLimitReachedError):
            detail["daily_cap"] = exc.daily_cap
        elif isinstance(exc, TransferWindowClosedError):
            detail["carried_daily_count"] = exc.carried_daily_count
        return HTTPException(status_code=status_code, detail=detail, headers=headers)
    raise exc

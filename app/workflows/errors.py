from __future__ import annotations


class WorkflowError(Exception):
    pass


class GatewayError(WorkflowError):
    pass


class TransientGatewayError(GatewayError):
    """Network failure, 5xx or 429 from an external collaborator. Retried."""


class GatewayRejectedError(GatewayError):
    """The collaborator refused the request. Never retried."""


class TransactionFailedError(WorkflowError):
    def __init__(self, tx_ref: str) -> None:
        super().__init__(f"transaction failed: {tx_ref}")
        self.tx_ref = tx_ref


class ConfirmationExhaustedError(WorkflowError):
    def __init__(self, tx_ref: str, polls: int) -> None:
        super().__init__(f"transaction not confirmed after {polls} polls: {tx_ref}")
        self.tx_ref = tx_ref
        self.polls = polls


class StepExhaustedError(WorkflowError):
    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"step {step} exhausted retries: {cause}")
        self.step = step
        self.cause = cause


class OwnershipChangedError(WorkflowError):
    def __init__(self, missing_asset_refs: list[str]) -> None:
        super().__init__(f"inputs no longer owned: {', '.join(missing_asset_refs)}")
        self.missing_asset_refs = missing_asset_refs


class CommitConflictError(WorkflowError):
    pass

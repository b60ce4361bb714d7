from __future__ import annotations


class SupplyError(Exception):
    """Base class for everything that can go wrong while sourcing questions."""

    kind = "supply_error"


class NoCredentials(SupplyError):
    kind = "no_credentials"


class NetworkError(SupplyError):
    kind = "network_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestTimeout(NetworkError):
    kind = "timeout"


class CredentialError(NetworkError):
    kind = "credential_error"


class BatchParseError(SupplyError):
    kind = "parse_error"


class BatchExhausted(SupplyError):
    kind = "batch_exhausted"

    def __init__(self, batch_id: int, attempts: int, last_error: SupplyError | None = None) -> None:
        reason = f"{type(last_error).__name__}: {last_error}" if last_error is not None else "no attempt made"
        super().__init__(f"batch {batch_id} exhausted after {attempts} attempt(s) ({reason})")
        self.batch_id = batch_id
        self.attempts = attempts
        self.last_error = last_error


class AllBatchesFailed(SupplyError):
    kind = "all_batches_failed"

    def __init__(self, failures: list[BaseException]) -> None:
        super().__init__(f"all {len(failures)} batch(es) failed")
        self.failures = failures


class SessionError(Exception):
    pass


class SessionNotFound(SessionError):
    pass


class InvalidTransition(SessionError):
    pass


class InvalidOption(SessionError):
    pass

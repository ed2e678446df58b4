"""Failover Orchestrator: run a model task against each credential in order.

Policy:
- Credentials are tried strictly sequentially in pool order; the first success wins.
- A Recoverable ``GatewayError`` (rate limit, unavailable, unauthorized, not found,
  quota) advances to the next credential.
- Anything else is Fatal: it propagates unchanged and no further credential is tried.
- Running out of credentials (or starting with none) raises ``CredentialsExhausted``.

"Exhausted for this call" is local state of one run; nothing is written back to the pool.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from src.models.errors import CredentialsExhausted, FailureClassification, GatewayError
from src.pipeline.credentials import Credential, CredentialPool
from src.utils.logger import logger

T = TypeVar("T")


def classify_failure(error: BaseException) -> FailureClassification:
    """Recoverable only for GatewayErrors tagged with a recoverable signal."""
    if isinstance(error, GatewayError):
        return error.classification
    return FailureClassification.FATAL


async def run_with_failover(
    pool: CredentialPool,
    task: Callable[[Credential], Awaitable[T]],
    operation: str = "model call",
    request_id: Optional[str] = None,
) -> T:
    """Invoke ``task(credential)`` for each credential until one succeeds.

    Args:
        pool: Ordered credential pool. Read only.
        task: Coroutine function making one model call with the given credential.
        operation: Label for log messages.
        request_id: Correlation id attached to log records.

    Returns:
        The first successful task result.

    Raises:
        CredentialsExhausted: Pool empty, or every credential failed recoverably.
            ``last_error`` holds the final recoverable failure.
        Exception: The first Fatal failure, unchanged.
    """
    extra = {"request_id": request_id} if request_id else {}

    if not pool:
        logger.error(f"{operation}: credential pool is empty", extra=extra)
        raise CredentialsExhausted("No credentials are configured.", attempts=0)

    last_error: Optional[BaseException] = None
    attempts = 0

    for credential in pool:
        attempts += 1
        try:
            result = await task(credential)
        except Exception as e:
            if classify_failure(e) is FailureClassification.FATAL:
                logger.error(
                    f"{operation}: fatal failure on credential {credential.position} "
                    f"({credential.masked}), not failing over: {e}",
                    extra={**extra, "credential": credential.position},
                )
                raise
            last_error = e
            logger.warning(
                f"{operation}: credential {credential.position} ({credential.masked}) "
                f"failed recoverably ({e.signal.value}), trying next",
                extra={**extra, "credential": credential.position},
            )
            continue

        if attempts > 1:
            logger.info(
                f"{operation}: succeeded on credential {credential.position} after {attempts - 1} failover(s)",
                extra={**extra, "credential": credential.position},
            )
        return result

    logger.error(f"{operation}: all {attempts} credential(s) exhausted", extra=extra)
    raise CredentialsExhausted(attempts=attempts, last_error=last_error) from last_error

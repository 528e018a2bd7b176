"""
Retry/backoff controller for w3r.

One invocation sends one request, repeating it while the outcome is
transient and the retry budget allows:

    PENDING -> SENT -> SUCCEEDED | RETRYING | FAILED
    RETRYING -> SENT            (after the backoff delay)

The delay before retry ``n`` is ``retry_delay * 2 ** (n - 1)``, spent in a
blocking sleep. No state survives the invocation.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .models import AttemptOutcome, AttemptSuccess, RequestDescriptor, TransportFailure
from .transport import BaseTransport
from .utils import calculate_backoff, is_retryable_status

logger = logging.getLogger("w3r.retry")
trace = logging.getLogger("w3r.trace")


class RetryState(str, Enum):
    """States of a retry session."""

    PENDING = "pending"
    SENT = "sent"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RetryState.SUCCEEDED, RetryState.FAILED})


def is_retryable(outcome: AttemptOutcome) -> bool:
    """Transport failures and 408, 429 and 5xx responses are retried."""
    if isinstance(outcome, TransportFailure):
        return True
    return is_retryable_status(outcome.status_code)


@dataclass
class RetrySession:
    """Mutable attempt state, owned by one ``RetryController.run`` call."""

    max_retries: int
    base_delay: float
    attempt_number: int = 0
    next_delay: float = 0.0
    state: RetryState = RetryState.PENDING
    outcome: Optional[AttemptOutcome] = None

    @property
    def retries_used(self) -> int:
        return max(self.attempt_number - 1, 0)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def record(self, outcome: AttemptOutcome) -> RetryState:
        """Classify the outcome of the attempt just sent and move to the next state."""
        self.outcome = outcome
        if not is_retryable(outcome):
            self.state = RetryState.SUCCEEDED
        elif self.attempt_number <= self.max_retries:
            self.next_delay = calculate_backoff(self.attempt_number, self.base_delay)
            self.state = RetryState.RETRYING
        elif isinstance(outcome, AttemptSuccess) and self.max_retries == 0:
            # Without a retry budget a 5xx is just the response.
            self.state = RetryState.SUCCEEDED
        else:
            self.state = RetryState.FAILED
        return self.state


@dataclass(frozen=True)
class RetryResult:
    """The terminal outcome of a retry session."""

    outcome: AttemptOutcome
    state: RetryState
    attempts: int

    @property
    def failed(self) -> bool:
        return self.state is RetryState.FAILED


class RetryController:
    """Drive the attempt loop for one request."""

    def __init__(
        self,
        transport: BaseTransport,
        retry: int = 0,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the controller.

        Args:
            transport: Transport used for every attempt
            retry: Maximum number of retries after the first attempt
            retry_delay: Delay before the first retry in seconds
            sleep: Blocking sleep function, replaceable in tests
        """
        if retry < 0:
            raise ValueError("retry must be >= 0")
        self.transport = transport
        self.retry = retry
        self.retry_delay = retry_delay
        self.sleep = sleep

    def run(self, descriptor: RequestDescriptor) -> RetryResult:
        """
        Send the request until a terminal outcome is reached.

        Returns:
            The last attempt's outcome with the terminal state. Timing in a
            successful outcome covers that attempt only.
        """
        session = RetrySession(max_retries=self.retry, base_delay=self.retry_delay)

        while not session.is_terminal:
            session.attempt_number += 1
            if session.attempt_number > 1:
                trace.info(f"--- Retry Attempt {session.retries_used} ---")

            session.state = RetryState.SENT
            state = session.record(self.transport.send(descriptor))

            if state is RetryState.RETRYING:
                self._report_retry(session)
                self.sleep(session.next_delay)

        logger.debug(
            f"Finished after {session.attempt_number} attempt(s) in state {session.state.value}"
        )
        return RetryResult(
            outcome=session.outcome, state=session.state, attempts=session.attempt_number
        )

    def _report_retry(self, session: RetrySession):
        outcome = session.outcome
        if isinstance(outcome, TransportFailure):
            reason = f"Request error ({outcome.kind.value}): {outcome.message}"
        else:
            reason = f"HTTP {outcome.status_code}"
        trace.info(f"{reason} - retrying in {session.next_delay:.2f}s...")

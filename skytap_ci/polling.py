# Copyright The Volcano Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Bounded polling against a busy provider.

``poll_until`` is the constant-interval primitive used for "wait until the
resource is free, then do the thing" operations: template availability
before creating a configuration, VPN attach/connect, tunnel creation and
deletes against a possibly locked resource.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import skytap_ci.clients.constants as constants
from skytap_ci.clients import responses
from skytap_ci.clients.gateway import ApiResponse
from skytap_ci.clients.responses import SignalKind
from skytap_ci.exceptions import ConflictError, GatewayError, ProviderError, ResponseParseError
from skytap_ci.utils.log import StepLogger
from skytap_ci.utils.utils import pause


def linear_backoff(base: float, attempt: int) -> float:
    """Delay before attempt ``attempt`` (1-based) when waits escalate"""
    return base * attempt


def constant_interval(base: float, attempt: int) -> float:
    return base


class Availability(Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    ERROR = "error"


class PollStatus(Enum):
    DONE = "done"
    RETRY = "retry"
    ABORT = "abort"


@dataclass(frozen=True)
class CheckResult:
    availability: Availability
    cause: Optional[str] = None

    @classmethod
    def available(cls) -> "CheckResult":
        return cls(Availability.AVAILABLE)

    @classmethod
    def busy(cls, cause: Optional[str] = None) -> "CheckResult":
        return cls(Availability.BUSY, cause)

    @classmethod
    def error(cls, cause: str) -> "CheckResult":
        return cls(Availability.ERROR, cause)


@dataclass(frozen=True)
class ActionResult:
    status: PollStatus
    cause: Optional[str] = None

    @classmethod
    def done(cls) -> "ActionResult":
        return cls(PollStatus.DONE)

    @classmethod
    def retry(cls, cause: Optional[str] = None) -> "ActionResult":
        return cls(PollStatus.RETRY, cause)

    @classmethod
    def abort(cls, cause: str) -> "ActionResult":
        return cls(PollStatus.ABORT, cause)


@dataclass
class PollOptions:
    max_attempts: int = constants.POLL_ATTEMPTS
    interval_seconds: float = constants.POLL_INTERVAL
    # deletes wait before every attempt, including the first
    sleep_before_attempt: bool = False


def poll_until(
    action: Callable[[], ActionResult],
    check: Optional[Callable[[], CheckResult]] = None,
    options: Optional[PollOptions] = None,
    logger: Optional[StepLogger] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Run ``action`` until it is done, aborts, or the attempts run out

    Args:
        action: Side-effecting call, interpreted into an ActionResult
        check: Optional availability check run before every action
        options: Attempt bound and constant interval
        logger: Step logger
        sleep: Blocking sleep, injected by tests

    Returns:
        True once the action reports DONE, False on ABORT, a check ERROR
        or exhaustion
    """
    options = options or PollOptions()
    logger = logger or StepLogger()

    for attempt in range(1, options.max_attempts + 1):
        delay = constant_interval(options.interval_seconds, attempt)
        if options.sleep_before_attempt:
            logger.log(f"Sleeping for {delay} seconds.")
            pause(delay, logger, sleep)

        if check is not None:
            checked = check()
            if checked.availability is Availability.ERROR:
                logger.error(f"Availability check failed: {checked.cause}")
                return False
            if checked.availability is Availability.BUSY:
                logger.log(
                    f"Resource busy ({checked.cause or 'no detail'}), "
                    f"attempt {attempt} of {options.max_attempts}."
                )
                if not options.sleep_before_attempt:
                    pause(delay, logger, sleep)
                continue

        result = action()
        if result.status is PollStatus.DONE:
            return True
        if result.status is PollStatus.ABORT:
            logger.error(result.cause or "Operation failed.")
            return False

        logger.log(
            f"Not done yet ({result.cause or 'no detail'}), "
            f"attempt {attempt} of {options.max_attempts}."
        )
        if not options.sleep_before_attempt:
            pause(delay, logger, sleep)

    logger.error(f"Gave up after {options.max_attempts} attempts.")
    return False


def interpret_response(response: ApiResponse) -> ActionResult:
    """Turn one provider response into a poller decision"""
    try:
        if not response.body.strip():
            if response.ok:
                return ActionResult.done()
            return ActionResult.retry(f"{response.status_line}: Response was null or empty.")

        signal = responses.check_for_error(response.body)
    except ResponseParseError as e:
        return ActionResult.abort(str(e))

    if signal is None:
        if response.ok:
            return ActionResult.done()
        return ActionResult.retry(response.status_line)
    if signal.kind is SignalKind.ALREADY_CONNECTED:
        return ActionResult.done()
    if signal.is_transient:
        return ActionResult.retry(signal.message)
    return ActionResult.abort(signal.message)


def _interpret_conflict(error: ConflictError) -> ActionResult:
    # a 409 may still carry an informational answer such as "already connected"
    try:
        signal = responses.check_for_error(error.context.get("body"))
    except ResponseParseError:
        signal = None
    if signal is not None and signal.kind is SignalKind.ALREADY_CONNECTED:
        return ActionResult.done()
    return ActionResult.abort(str(error))


def request_action(send: Callable[[], ApiResponse]) -> Callable[[], ActionResult]:
    """Wrap a gateway call as a poller action

    Transport errors that survived the gateway's own retries become another
    polling round; provider errors are interpreted by their signal.
    """
    def action() -> ActionResult:
        try:
            return interpret_response(send())
        except ConflictError as e:
            return _interpret_conflict(e)
        except GatewayError as e:
            return ActionResult.retry(str(e))
        except ProviderError as e:
            if e.signal is not None and e.signal.is_transient:
                return ActionResult.retry(str(e))
            return ActionResult.abort(str(e))
        except ResponseParseError as e:
            return ActionResult.abort(str(e))

    return action


def deletion_action(send: Callable[[], ApiResponse]) -> Callable[[], ActionResult]:
    """Poller action for deletes: any refusal is retried until the resource frees up"""
    def action() -> ActionResult:
        try:
            response = send()
        except GatewayError as e:
            return ActionResult.retry(str(e))
        if response.status_code == 404:
            return ActionResult.abort(f"{response.status_line}: resource not found")
        try:
            signal = responses.check_for_error(response.body)
        except ResponseParseError:
            signal = None
        if response.ok and signal is None:
            return ActionResult.done()
        cause = signal.message if signal is not None else response.status_line
        return ActionResult.retry(f"An error occurred while attempting to delete: {cause}")

    return action

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
Runstate transitions for Skytap resources.

The provider accepts a state change request and then converges in its own
time, sometimes reporting ``busy`` in between. ``TransitionEngine`` sends the
request, re-checks with linear backoff, re-sends when the resource is idle
but not yet in the target state, and optionally forces a fallback state
(``halted``) when a graceful shutdown never completes.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import skytap_ci.clients.constants as constants
from skytap_ci.clients import responses
from skytap_ci.clients.gateway import ApiResponse, HttpGateway
from skytap_ci.exceptions import SkytapError
from skytap_ci.polling import linear_backoff
from skytap_ci.utils.log import StepLogger
from skytap_ci.utils.utils import pause

# (current, target) pairs the provider rejects for configurations
CONFIGURATION_FORBIDDEN = frozenset({
    ("stopped", "suspended"),
    ("halted", "suspended"),
    ("suspended", "stopped"),
})

# container action -> runstate the container reports once it has converged
CONTAINER_ACTION_TARGETS = {
    "start": "running",
    "unpause": "running",
    "pause": "paused",
    "stop": "exited",
    "kill": "exited",
}

CONTAINER_HOST_STATES = ("enabled", "disabled")


@dataclass(frozen=True)
class TransitionRequest:
    """Target runstate plus the value actually sent to the provider"""
    target_state: str
    action: str

    @classmethod
    def to_state(cls, state: str) -> "TransitionRequest":
        return cls(target_state=state, action=state)


class Outcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"
    FAILED_EXHAUSTED = "failed_exhausted"


@dataclass(frozen=True)
class OperationOutcome:
    outcome: Outcome
    cause: Optional[str] = None
    final_state: Optional[str] = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCEEDED


@dataclass
class TransitionOptions:
    max_retries: int = constants.STATE_CHANGE_RETRIES
    base_interval_seconds: float = constants.STATE_CHANGE_BASE_INTERVAL
    fallback_state: Optional[str] = None
    graceful_state: str = "stopped"
    fallback_settle_seconds: float = constants.FALLBACK_SETTLE_SECONDS
    settle_after_success_seconds: float = 0


class EngineState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    FALLBACK = "fallback"
    TERMINAL = "terminal"


class TransitionalResource:
    """A remote resource with a readable runstate and a way to request a new one"""

    kind = "resource"

    def __init__(self, gateway: HttpGateway, resource_id: str):
        self.gateway = gateway
        self.resource_id = resource_id

    def __str__(self) -> str:
        return f"{self.kind} {self.resource_id}"

    def current_state(self) -> str:
        raise NotImplementedError

    def request_transition(self, action: str) -> ApiResponse:
        raise NotImplementedError

    def is_transition_legal(self, current: str, request: TransitionRequest) -> bool:
        return True


class ConfigurationResource(TransitionalResource):
    """Skytap environment (configuration), keyed by ``runstate``"""

    kind = "configuration"

    def current_state(self) -> str:
        response = self.gateway.get(f"configurations/{self.resource_id}")
        return responses.get_text_field(response.body, "runstate")

    def request_transition(self, action: str) -> ApiResponse:
        response = self.gateway.put(
            f"configurations/{self.resource_id}", params={"runstate": action}
        )
        responses.raise_for_error(response.body)
        return response

    def is_transition_legal(self, current: str, request: TransitionRequest) -> bool:
        return (current, request.target_state) not in CONFIGURATION_FORBIDDEN


class ContainerResource(TransitionalResource):
    """Docker container on a container host VM, keyed by ``status``"""

    kind = "container"

    def current_state(self) -> str:
        response = self.gateway.get(f"v2/containers/{self.resource_id}.json")
        return responses.get_text_field(response.body, "status")

    def request_transition(self, action: str) -> ApiResponse:
        response = self.gateway.put(
            f"v2/containers/{self.resource_id}", params={"runstate": action}
        )
        responses.raise_for_error(response.body)
        return response

    def is_transition_legal(self, current: str, request: TransitionRequest) -> bool:
        action = request.action
        if current == "exited" and action == "pause":
            return False
        if current == "paused" and action != "unpause":
            return False
        if action == "unpause" and current != "paused":
            return False
        return True

    @staticmethod
    def request_for(action: str) -> TransitionRequest:
        if action not in CONTAINER_ACTION_TARGETS:
            raise ValueError(f"Unknown container action '{action}'")
        return TransitionRequest(target_state=CONTAINER_ACTION_TARGETS[action], action=action)


class VMContainerHostResource(TransitionalResource):
    """Container host flag of one VM, reported as ``enabled`` / ``disabled``"""

    kind = "vm container host"

    def __init__(self, gateway: HttpGateway, configuration_id: str, vm_id: str):
        super().__init__(gateway, vm_id)
        self.configuration_id = configuration_id

    @property
    def path(self) -> str:
        return f"configurations/{self.configuration_id}/vms/{self.resource_id}"

    def current_state(self) -> str:
        response = self.gateway.get(self.path)
        flag = responses.get_field(response.body, "container_host")
        return "enabled" if flag is True else "disabled"

    def request_transition(self, action: str) -> ApiResponse:
        response = self.gateway.put(self.path, body={"container_host": action == "enabled"})
        responses.raise_for_error(response.body)
        return response


class TransitionEngine:
    """Drive one resource to a target runstate and report how it went"""

    def __init__(
        self,
        logger: StepLogger,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.logger = logger
        self._sleep = sleep
        self.state = EngineState.IDLE

    def _fetch(self, resource: TransitionalResource) -> Optional[str]:
        try:
            return resource.current_state()
        except SkytapError as e:
            self.logger.error(f"Error retrieving current runstate of {resource}: {e}")
            return None

    def _send(self, resource: TransitionalResource, action: str) -> None:
        self.logger.log(f"Sending state change request for {resource}. Target action is {action}")
        try:
            resource.request_transition(action)
        except SkytapError as e:
            # convergence is judged by polling
            self.logger.error(f"Skytap Error: {e}")

    def transition(
        self,
        resource: TransitionalResource,
        request: TransitionRequest,
        options: Optional[TransitionOptions] = None,
    ) -> OperationOutcome:
        """Move ``resource`` to ``request.target_state``

        Returns:
            SUCCEEDED once the target (or accepted fallback) state is observed,
            FAILED_TERMINAL when the state is unreadable up front or the
            transition is not permitted, FAILED_EXHAUSTED otherwise
        """
        options = options or TransitionOptions()
        self.state = EngineState.IDLE
        target = request.target_state

        current = self._fetch(resource)
        if current is None:
            self.state = EngineState.TERMINAL
            return OperationOutcome(Outcome.FAILED_TERMINAL, cause="current state unavailable")

        self.logger.log(f"Target runstate: {target}")
        self.logger.log(f"Current runstate: {current}")

        if current == target:
            self.logger.always_log("Current runstate is equal to target. Skipping this step.")
            self.state = EngineState.CONVERGED
            return OperationOutcome(Outcome.SUCCEEDED, final_state=current)

        if not resource.is_transition_legal(current, request):
            self.logger.always_log(
                f"Skytap will not permit a \"{request.action}\" request for {resource.kind} "
                f"in state \"{current}\". Aborting build step."
            )
            self.state = EngineState.TERMINAL
            return OperationOutcome(
                Outcome.FAILED_TERMINAL,
                cause="transition not permitted",
                final_state=current,
            )

        self.state = EngineState.POLLING
        self._send(resource, request.action)

        for attempt in range(1, options.max_retries + 1):
            delay = linear_backoff(options.base_interval_seconds, attempt)
            self.logger.log(f"Sleeping for {delay} seconds.")
            pause(delay, self.logger, self._sleep)

            observed = self._fetch(resource)
            if observed is not None:
                current = observed
            self.logger.log(f"Current runstate={observed}")

            if observed == target:
                pause(options.settle_after_success_seconds, self.logger, self._sleep)
                self.logger.always_log("Runstate transitioned successfully.")
                self.state = EngineState.CONVERGED
                return OperationOutcome(Outcome.SUCCEEDED, final_state=observed, attempts=attempt)

            if observed != constants.BUSY_STATE:
                self._send(resource, request.action)

        if options.fallback_state and target == options.graceful_state:
            return self._fall_back(resource, options)

        self.state = EngineState.EXHAUSTED
        self.logger.error(f"{resource} did not reach {target} after {options.max_retries} attempts.")
        return OperationOutcome(
            Outcome.FAILED_EXHAUSTED,
            cause="retries exhausted",
            final_state=current,
            attempts=options.max_retries,
        )

    def _fall_back(self, resource: TransitionalResource, options: TransitionOptions) -> OperationOutcome:
        self.state = EngineState.FALLBACK
        self.logger.always_log(f"Shutdown has failed. Attempting to force {options.fallback_state}.")

        self._send(resource, options.fallback_state)
        self.logger.log(f"Sleeping for {options.fallback_settle_seconds} seconds.")
        pause(options.fallback_settle_seconds, self.logger, self._sleep)

        observed = self._fetch(resource)
        self.logger.log(f"Current state: {observed}")
        # a halted configuration reports itself as stopped
        if observed in (options.fallback_state, options.graceful_state):
            self.logger.always_log(f"{resource} powered down successfully.")
            self.state = EngineState.CONVERGED
            return OperationOutcome(Outcome.SUCCEEDED, final_state=observed, attempts=options.max_retries)

        self.state = EngineState.EXHAUSTED
        self.logger.error(f"Failed to power down {resource}.")
        return OperationOutcome(
            Outcome.FAILED_EXHAUSTED,
            cause="fallback did not converge",
            final_state=observed,
            attempts=options.max_retries,
        )

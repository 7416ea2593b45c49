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
Common shape of every pipeline step.

A step is selected by its ``action`` tag, validates its parameters with a
pydantic model, and runs four phases behind ``execute_step``:

    preflight  either/or and required-field checks, no network
    resolve    runtime ids from direct values, descriptor files or names
    execute    the API calls themselves
    report     a closing log line
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from skytap_ci.clients import responses
from skytap_ci.clients.gateway import ApiResponse, HttpGateway
from skytap_ci.exceptions import ConfigurationError, ProviderError, SkytapError
from skytap_ci.polling import PollOptions
from skytap_ci.resolver import NameResolver, ResourceHandle, WorkspacePaths, require_one_of, write_descriptor
from skytap_ci.transitions import TransitionEngine
from skytap_ci.utils.log import SEPARATOR, StepLogger

STEP_TYPES: Dict[str, Type["Step"]] = {}


def register_step(cls: Type["Step"]) -> Type["Step"]:
    """Class decorator adding a step to the registry under its action tag"""
    if not cls.action:
        raise ValueError(f"{cls.__name__} has no action tag")
    if cls.action in STEP_TYPES:
        raise ValueError(f"Duplicate step action '{cls.action}'")
    STEP_TYPES[cls.action] = cls
    return cls


class StepParams(BaseModel):
    """Base model for step parameters"""

    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)


@dataclass
class StepContext:
    """Collaborators shared by every step of one pipeline execution"""
    gateway: HttpGateway
    logger: StepLogger
    paths: WorkspacePaths
    sleep: Callable[[float], None] = time.sleep
    poll_options: PollOptions = field(default_factory=PollOptions)

    @property
    def names(self) -> NameResolver:
        return NameResolver(self.gateway, self.logger)


class Step:
    """Base class of all step variants"""

    action: str = ""
    display_name: str = ""
    params_model: Type[StepParams] = StepParams

    def __init__(self, params: Union[StepParams, Mapping[str, Any], None], context: StepContext):
        if isinstance(params, StepParams):
            self.params = params
        else:
            try:
                self.params = self.params_model(**dict(params or {}))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid parameters for step '{self.action}': {e}",
                    {"action": self.action}
                ) from e
        self.context = context

    @property
    def gateway(self) -> HttpGateway:
        return self.context.gateway

    @property
    def logger(self) -> StepLogger:
        return self.context.logger

    @property
    def engine(self) -> TransitionEngine:
        return TransitionEngine(self.logger, sleep=self.context.sleep)

    def preflight(self) -> None:
        pass

    def resolve(self) -> None:
        pass

    def execute(self) -> bool:
        raise NotImplementedError

    def report(self, succeeded: bool) -> None:
        if not succeeded:
            self.logger.error(f"{self.display_name} failed.")
        self.logger.always_log(SEPARATOR)

    def execute_step(self) -> bool:
        """Run every phase and report success as a boolean"""
        self.logger.banner(self.display_name)
        try:
            self.preflight()
            self.resolve()
            succeeded = self.execute()
        except SkytapError as e:
            self.logger.error(str(e))
            succeeded = False
        self.report(succeeded)
        return succeeded

    # helpers shared by the variants

    def either(self, value_a: Optional[str], value_b: Optional[str], label: str) -> None:
        require_one_of(value_a, value_b, label)

    def required(self, value: Optional[str], label: str) -> None:
        if not value:
            raise ConfigurationError(f"No value was provided for {label}.")

    def runtime_id(self, direct_id: Optional[str], source_file: Optional[str], what: str) -> str:
        path = self.context.paths.resolve_file(source_file)
        self.logger.log(f"{what} File: {path}")
        resolved = ResourceHandle(id=direct_id or "", source_file=path).resolve()
        self.logger.log(f"{what} ID: {resolved}")
        return resolved

    def save(self, filename: str, body: Any, what: str) -> str:
        path = self.context.paths.resolve_file(filename)
        self.logger.log(f"Saving {what} to file: {path}")
        try:
            write_descriptor(path, body)
        except OSError as e:
            raise SkytapError(f"Failed to save {what} to file: {path}", {"path": path}) from e
        return path

    def checked(self, response: ApiResponse) -> Any:
        """Decode a response, raising on the provider error envelope"""
        data = responses.raise_for_error(response.body)
        if not response.ok:
            raise ProviderError(f"Request failed: {response.status_line}")
        return data

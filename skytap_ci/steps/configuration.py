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

from dataclasses import replace
from typing import List, Optional

from pydantic import Field, field_validator

from skytap_ci.clients import responses
from skytap_ci.clients.gateway import ApiResponse
from skytap_ci.exceptions import GatewayError, ProviderError, ResponseParseError
from skytap_ci.polling import (
    ActionResult,
    CheckResult,
    PollStatus,
    deletion_action,
    interpret_response,
    poll_until,
)
from skytap_ci.steps.base import Step, StepParams, register_step
from skytap_ci.transitions import ConfigurationResource, TransitionOptions, TransitionRequest

CONFIGURATION_STATES = ("running", "stopped", "suspended", "halted")


class CreateConfigurationParams(StepParams):
    template_id: str = Field("", description="Template to build the environment from")
    template_file: str = Field("", description="Descriptor file of the template")
    configuration_file: str = Field("", description="File the new environment is saved to")


@register_step
class CreateConfigurationStep(Step):
    """Create an environment from a template once the template is free"""

    action = "create_configuration"
    display_name = "Creating Configuration from Template"
    params_model = CreateConfigurationParams

    def preflight(self) -> None:
        self.either(self.params.template_id, self.params.template_file, "template ID and file")
        self.required(self.params.configuration_file, "the configuration file")

    def resolve(self) -> None:
        self.template_id = self.runtime_id(self.params.template_id, self.params.template_file, "Template")
        self.created: Optional[ApiResponse] = None

    def check_template(self) -> CheckResult:
        try:
            response = self.gateway.get(f"templates/{self.template_id}")
            data = responses.raise_for_error(response.body)
        except (GatewayError, ProviderError, ResponseParseError) as e:
            return CheckResult.error(str(e))
        if isinstance(data, dict) and data.get("busy"):
            return CheckResult.busy(f"template {self.template_id} is busy")
        return CheckResult.available()

    def create(self) -> ActionResult:
        try:
            response = self.gateway.post("configurations", params={"template_id": self.template_id})
        except GatewayError as e:
            return ActionResult.retry(str(e))
        result = interpret_response(response)
        if result.status is PollStatus.DONE:
            self.created = response
        return result

    def execute(self) -> bool:
        if not poll_until(
            self.create,
            check=self.check_template,
            options=self.context.poll_options,
            logger=self.logger,
            sleep=self.context.sleep,
        ):
            return False
        path = self.save(self.params.configuration_file, self.created.body, "configuration")
        self.logger.always_log(f"Configuration successfully created and saved to file: {path}")
        return True


class ChangeConfigurationStateParams(StepParams):
    configuration_id: str = Field("", description="Environment to change")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    target_run_state: str = Field(..., description="running, stopped, suspended or halted")
    halt_on_failed_shutdown: bool = Field(False, description="Force halted when a graceful stop never completes")

    @field_validator("target_run_state")
    @classmethod
    def validate_target_run_state(cls, v):
        if v.lower() not in CONFIGURATION_STATES:
            raise ValueError(f"Runstate '{v}' is not supported. Supported runstates: {list(CONFIGURATION_STATES)}")
        return v.lower()


@register_step
class ChangeConfigurationStateStep(Step):
    action = "change_configuration_state"
    display_name = "Changing Configuration State"
    params_model = ChangeConfigurationStateParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )

    def execute(self) -> bool:
        options = TransitionOptions(fallback_state="halted" if self.params.halt_on_failed_shutdown else None)
        outcome = self.engine.transition(
            ConfigurationResource(self.gateway, self.configuration_id),
            TransitionRequest.to_state(self.params.target_run_state),
            options,
        )
        if not outcome.succeeded:
            self.logger.error(f"Runstate change failed: {outcome.cause}")
        return outcome.succeeded


class ConfigurationParams(StepParams):
    configuration_id: str = Field("", description="Environment id")
    configuration_file: str = Field("", description="Descriptor file of the environment")


@register_step
class DeleteConfigurationStep(Step):
    """Disconnect every tunnel of the environment, then delete it"""

    action = "delete_configuration"
    display_name = "Deleting Configuration"
    params_model = ConfigurationParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )

    def tunnel_ids(self) -> List[str]:
        networks = self.checked(self.gateway.get(f"configurations/{self.configuration_id}/networks"))
        ids = []
        for network in networks or []:
            for tunnel in network.get("tunnels") or []:
                ids.append(responses.as_text(tunnel["id"]))
        return ids

    def disconnect(self, tunnel_id: str) -> None:
        self.logger.log(f"Disconnecting tunnel {tunnel_id}")
        response = self.gateway.delete(f"tunnels/{tunnel_id}")
        if not response.ok:
            raise ProviderError(
                f"An error occurred while attempting to disconnect {tunnel_id}: {response.status_line}"
            )
        self.logger.log(f"Tunnel {tunnel_id} was disconnected successfully.")

    def execute(self) -> bool:
        for tunnel_id in self.tunnel_ids():
            self.disconnect(tunnel_id)

        path = f"configurations/{self.configuration_id}"
        deleted = poll_until(
            deletion_action(lambda: self.gateway.delete(path)),
            options=replace(self.context.poll_options, sleep_before_attempt=True),
            logger=self.logger,
            sleep=self.context.sleep,
        )
        if deleted:
            self.logger.always_log(f"Configuration {self.configuration_id} was successfully deleted.")
        return deleted


class MergeTemplateParams(StepParams):
    configuration_id: str = Field("", description="Environment to merge into")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    template_id: str = Field("", description="Template to merge")
    template_file: str = Field("", description="Descriptor file of the template")
    configuration_save_file: str = Field("", description="Optional file the merged environment is saved to")


@register_step
class MergeTemplateStep(Step):
    action = "merge_template"
    display_name = "Merging Template into Configuration"
    params_model = MergeTemplateParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        self.either(self.params.template_id, self.params.template_file, "template ID and file")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )
        self.template_id = self.runtime_id(self.params.template_id, self.params.template_file, "Template")

    def execute(self) -> bool:
        response = self.gateway.put(
            f"configurations/{self.configuration_id}", params={"template_id": self.template_id}
        )
        self.checked(response)
        if self.params.configuration_save_file:
            self.save(self.params.configuration_save_file, response.body, "configuration")
        self.logger.always_log(
            f"Template {self.template_id} was merged into configuration {self.configuration_id}."
        )
        return True

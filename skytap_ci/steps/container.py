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
from typing import Any, Dict

from pydantic import Field, field_validator

import skytap_ci.clients.constants as constants
from skytap_ci.polling import deletion_action, poll_until
from skytap_ci.steps.base import Step, StepParams, register_step
from skytap_ci.transitions import (
    CONTAINER_ACTION_TARGETS,
    CONTAINER_HOST_STATES,
    ContainerResource,
    TransitionOptions,
    TransitionRequest,
    VMContainerHostResource,
)


class VMParams(StepParams):
    configuration_id: str = Field("", description="Environment owning the VM")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    vm_id: str = Field("", description="Container host VM")
    vm_name: str = Field("", description="Name of the container host VM")


class VMStep(Step):
    """Step addressing one VM of an environment by id or name"""

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        self.either(self.params.vm_id, self.params.vm_name, "VM ID and name")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )
        self.vm_id = self.context.names.vm_id_or_name(self.configuration_id, self.params.vm_id, self.params.vm_name)
        self.logger.log(f"VM ID: {self.vm_id}")


class CreateContainerParams(VMParams):
    container_registry_name: str = Field("", description="Registry the image is pulled from")
    repository_name: str = Field("", description="Image repository, e.g. busybox:latest")
    container_name: str = Field("", description="Optional container name")
    container_command: str = Field("", description="Optional command run in the container")
    expose_all_ports: bool = Field(False, description="Publish every port the image exposes")
    container_save_file: str = Field("", description="File the new container is saved to")


@register_step
class CreateContainerStep(VMStep):
    action = "create_container"
    display_name = "Creating Container"
    params_model = CreateContainerParams

    def preflight(self) -> None:
        super().preflight()
        self.required(self.params.container_registry_name, "the container registry name")
        self.required(self.params.repository_name, "the repository name")
        self.required(self.params.container_save_file, "the container save file")

    def resolve(self) -> None:
        super().resolve()
        self.registry_id = self.context.names.container_registry_id(self.params.container_registry_name)

    def payload(self) -> Dict[str, Any]:
        p = self.params
        operation: Dict[str, Any] = {"expose_all_ports": p.expose_all_ports}
        if p.container_command:
            operation["command"] = p.container_command
        body: Dict[str, Any] = {
            "container_registry_id": int(self.registry_id) if self.registry_id.isdigit() else self.registry_id,
            "repository": p.repository_name,
        }
        if p.container_name:
            body["name"] = p.container_name
        body["operation"] = operation
        return body

    def execute(self) -> bool:
        response = self.gateway.post(
            f"configurations/{self.configuration_id}/vms/{self.vm_id}/containers",
            body=self.payload(),
        )
        self.checked(response)
        path = self.save(self.params.container_save_file, response.body, "container")
        self.logger.always_log(f"Container successfully created and saved to file: {path}")
        return True


class ContainerParams(StepParams):
    container_id: str = Field("", description="Container id")
    container_file: str = Field("", description="Descriptor file of the container")


class ChangeContainerStateParams(ContainerParams):
    target_container_action: str = Field(..., description="start, stop, pause, unpause or kill")

    @field_validator("target_container_action")
    @classmethod
    def validate_target_container_action(cls, v):
        if v.lower() not in CONTAINER_ACTION_TARGETS:
            raise ValueError(
                f"Container action '{v}' is not supported. Supported actions: {sorted(CONTAINER_ACTION_TARGETS)}"
            )
        return v.lower()


@register_step
class ChangeContainerStateStep(Step):
    action = "change_container_state"
    display_name = "Changing Container State"
    params_model = ChangeContainerStateParams

    def preflight(self) -> None:
        self.either(self.params.container_id, self.params.container_file, "container ID and file")

    def resolve(self) -> None:
        self.container_id = self.runtime_id(self.params.container_id, self.params.container_file, "Container")

    def execute(self) -> bool:
        request = ContainerResource.request_for(self.params.target_container_action)
        self.logger.log(f"Target Container Action: {request.action}")
        self.logger.log(f"Target Container Runstate: {request.target_state}")
        outcome = self.engine.transition(
            ContainerResource(self.gateway, self.container_id),
            request,
            TransitionOptions(settle_after_success_seconds=constants.CONTAINER_SETTLE_SECONDS),
        )
        if not outcome.succeeded:
            self.logger.error(f"Container runstate change failed: {outcome.cause}")
        return outcome.succeeded


@register_step
class DeleteContainerStep(Step):
    action = "delete_container"
    display_name = "Deleting Container"
    params_model = ContainerParams

    def preflight(self) -> None:
        self.either(self.params.container_id, self.params.container_file, "container ID and file")

    def resolve(self) -> None:
        self.container_id = self.runtime_id(self.params.container_id, self.params.container_file, "Container")

    def execute(self) -> bool:
        path = f"v2/containers/{self.container_id}"
        deleted = poll_until(
            deletion_action(lambda: self.gateway.delete(path)),
            options=replace(self.context.poll_options, sleep_before_attempt=True),
            logger=self.logger,
            sleep=self.context.sleep,
        )
        if deleted:
            self.logger.always_log(f"Container {self.container_id} was successfully deleted.")
        return deleted


class GetContainerMetadataParams(VMParams):
    container_name: str = Field("", description="Name of the container on the VM")
    container_data_file: str = Field("", description="File the container metadata is saved to")


@register_step
class GetContainerMetadataStep(VMStep):
    action = "get_container_metadata"
    display_name = "Getting Container Metadata"
    params_model = GetContainerMetadataParams

    def preflight(self) -> None:
        super().preflight()
        self.required(self.params.container_name, "the container name")
        self.required(self.params.container_data_file, "the container data file")

    def resolve(self) -> None:
        super().resolve()
        self.container_id = self.context.names.vm_container_id(
            self.configuration_id, self.vm_id, self.params.container_name
        )

    def execute(self) -> bool:
        response = self.gateway.get(f"v2/containers/{self.container_id}.json")
        self.checked(response)
        path = self.save(self.params.container_data_file, response.body, "container metadata")
        self.logger.always_log(f"Container metadata saved to file: {path}")
        return True


class ChangeVMContainerHostParams(VMParams):
    container_host_status: str = Field(..., description="enabled or disabled")

    @field_validator("container_host_status")
    @classmethod
    def validate_container_host_status(cls, v):
        if v.lower() not in CONTAINER_HOST_STATES:
            raise ValueError(f"Status '{v}' is not supported. Supported statuses: {list(CONTAINER_HOST_STATES)}")
        return v.lower()


@register_step
class ChangeVMContainerHostStatusStep(VMStep):
    action = "change_vm_container_host_status"
    display_name = "Changing VM Container Host Status"
    params_model = ChangeVMContainerHostParams

    def execute(self) -> bool:
        outcome = self.engine.transition(
            VMContainerHostResource(self.gateway, self.configuration_id, self.vm_id),
            TransitionRequest.to_state(self.params.container_host_status),
        )
        if not outcome.succeeded:
            self.logger.error(f"VM container host status change failed: {outcome.cause}")
        return outcome.succeeded

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

from pydantic import Field

from skytap_ci.steps.base import Step, StepParams, register_step


class ProjectParams(StepParams):
    project_id: str = Field("", description="Project to add to")
    project_name: str = Field("", description="Name of the project to add to")


class ProjectStep(Step):
    """Add a resource to a project, given by id or by name"""

    def preflight(self) -> None:
        self.either(self.params.project_id, self.params.project_name, "project ID and name")

    def project(self) -> str:
        if self.params.project_name:
            return self.context.names.project_id(self.params.project_name)
        return self.params.project_id

    def add(self, collection: str, resource_id: str) -> bool:
        project_id = self.project()
        self.logger.log(f"Project ID: {project_id}")
        self.checked(self.gateway.post(f"projects/{project_id}/{collection}/{resource_id}"))
        self.logger.always_log(f"{resource_id} was successfully added to project {project_id}.")
        return True


class AddConfigurationToProjectParams(ProjectParams):
    configuration_id: str = Field("", description="Environment to add")
    configuration_file: str = Field("", description="Descriptor file of the environment")


@register_step
class AddConfigurationToProjectStep(ProjectStep):
    action = "add_configuration_to_project"
    display_name = "Adding Configuration to Project"
    params_model = AddConfigurationToProjectParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        super().preflight()

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )

    def execute(self) -> bool:
        return self.add("configurations", self.configuration_id)


class AddTemplateToProjectParams(ProjectParams):
    template_id: str = Field("", description="Template to add")
    template_file: str = Field("", description="Descriptor file of the template")


@register_step
class AddTemplateToProjectStep(ProjectStep):
    action = "add_template_to_project"
    display_name = "Adding Template to Project"
    params_model = AddTemplateToProjectParams

    def preflight(self) -> None:
        self.either(self.params.template_id, self.params.template_file, "template ID and file")
        super().preflight()

    def resolve(self) -> None:
        self.template_id = self.runtime_id(self.params.template_id, self.params.template_file, "Template")

    def execute(self) -> bool:
        return self.add("templates", self.template_id)

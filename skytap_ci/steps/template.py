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

from skytap_ci.clients import responses
from skytap_ci.steps.base import Step, StepParams, register_step


class CreateTemplateParams(StepParams):
    configuration_id: str = Field("", description="Environment to capture")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    template_name: str = Field("", description="Name given to the new template")
    template_description: str = Field("", description="Description given to the new template")
    template_save_file: str = Field("", description="File the new template is saved to")


@register_step
class CreateTemplateStep(Step):
    """Capture an environment as a template, then name it"""

    action = "create_template"
    display_name = "Creating Template from Configuration"
    params_model = CreateTemplateParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        self.required(self.params.template_save_file, "the template save file")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )

    def execute(self) -> bool:
        created = self.checked(
            self.gateway.post("templates", params={"configuration_id": self.configuration_id})
        )
        template_id = responses.get_text_field(created, "id")
        self.logger.log(f"Template {template_id} created, setting name and description.")

        response = self.gateway.put(
            f"templates/{template_id}",
            params={
                "name": self.params.template_name,
                "description": self.params.template_description,
            },
        )
        self.checked(response)

        path = self.save(self.params.template_save_file, response.body, "template")
        self.logger.always_log(f"Template {template_id} successfully created and saved to file: {path}")
        return True

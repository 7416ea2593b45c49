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

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

import skytap_ci.clients.constants as constants
from skytap_ci.clients import responses
from skytap_ci.exceptions import ConfigurationError, ResourceNotFoundError
from skytap_ci.steps.base import Step, StepParams, register_step

PERMISSION_OPTIONS = ("use", "view_only")


class CreatePublishURLParams(StepParams):
    configuration_id: str = Field("", description="Environment to publish")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    portal_name: str = Field(constants.DEFAULT_PORTAL_NAME, description="Name of the sharing portal")
    permission_option: str = Field("use", description="VM access granted through the portal: use or view_only")
    password: Optional[str] = Field(None, description="Portal password, none when omitted")
    url_save_file: str = Field("", description="File the portal URL is saved to")

    @field_validator("permission_option")
    @classmethod
    def validate_permission_option(cls, v):
        if v not in PERMISSION_OPTIONS:
            raise ValueError(f"Permission '{v}' is not supported. Supported permissions: {list(PERMISSION_OPTIONS)}")
        return v

    @field_validator("portal_name")
    @classmethod
    def default_portal_name(cls, v):
        return v or constants.DEFAULT_PORTAL_NAME


@register_step
class CreatePublishURLStep(Step):
    """Create a single-URL sharing portal over every VM of an environment"""

    action = "create_publish_url"
    display_name = "Creating Sharing Portal"
    params_model = CreatePublishURLParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        self.required(self.params.url_save_file, "the URL save file")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )

    def vm_ids(self) -> List[str]:
        self.logger.log(f"Retrieving VM ids for environment: {self.configuration_id}")
        data = self.checked(self.gateway.get(f"configurations/{self.configuration_id}"))
        return [responses.as_text(vm["id"]) for vm in (data or {}).get("vms") or []]

    def publish_set(self, vm_ids: List[str]) -> Dict[str, Any]:
        return {
            "publish_set": {
                "publish_set_type": "single_url",
                "vms": [{"access": self.params.permission_option, "vm_ref": vm_id} for vm_id in vm_ids],
                "password": self.params.password or None,
                "name": self.params.portal_name,
            }
        }

    def execute(self) -> bool:
        payload = self.publish_set(self.vm_ids())
        response = self.gateway.post(f"configurations/{self.configuration_id}/publish_sets", body=payload)
        self.checked(response)
        url = responses.get_text_field(response.body, "desktops_url")
        self.logger.log(f"Sharing Portal URL: {url}")

        path = self.save(self.params.url_save_file, url, "URL")
        self.logger.always_log(f"URL {url} successfully created and saved to file: {path}")
        return True


class ListPublishedURLParams(StepParams):
    configuration_id: str = Field("", description="Environment owning the portal")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    url_name: str = Field("", description="Name of the sharing portal")
    url_file: str = Field("", description="File the portal URL is saved to")


@register_step
class ListPublishedURLStep(Step):
    action = "list_published_url"
    display_name = "Listing Published URL"
    params_model = ListPublishedURLParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        self.required(self.params.url_name, "the URL name")
        self.required(self.params.url_file, "the URL save file")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )

    def published_url(self, publish_sets: List[Dict[str, Any]]) -> str:
        self.logger.log("Scanning publish_sets ...")
        for publish_set in publish_sets:
            if publish_set.get("name") != self.params.url_name:
                continue
            self.logger.log(f"Sharing Portal Name matched: {self.params.url_name}")
            if publish_set.get("publish_set_type") == "multiple_url":
                raise ConfigurationError("URLs for individual VMs are not supported.")
            return responses.get_text_field(publish_set, "desktops_url")
        raise ResourceNotFoundError(
            f"URL Name: {self.params.url_name} could not be found in publish_sets "
            f"for environment {self.configuration_id}"
        )

    def execute(self) -> bool:
        data = self.checked(self.gateway.get(f"configurations/{self.configuration_id}"))
        url = self.published_url((data or {}).get("publish_sets") or [])
        path = self.save(self.params.url_file, url, "URL")
        self.logger.always_log(f"URL {url} saved to file: {path}")
        return True


class PublishedServiceParams(StepParams):
    configuration_id: str = Field("", description="Environment owning the VM")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    vm_id: str = Field("", description="VM exposing the service")
    vm_name: str = Field("", description="Name of the VM exposing the service")
    network_name: str = Field("", description="Network of the VM interface")
    port_number: str = Field("", description="Internal port of the service")
    published_service_file: str = Field("", description="File the external ip:port is saved to")

    @model_validator(mode="after")
    def validate_port_number(self):
        if self.port_number and not self.port_number.isdigit():
            raise ValueError(f"Port '{self.port_number}' is not a number")
        return self


class PublishedServiceStep(Step):
    params_model = PublishedServiceParams

    def preflight(self) -> None:
        p = self.params
        self.either(p.configuration_id, p.configuration_file, "configuration ID and file")
        self.either(p.vm_id, p.vm_name, "VM ID and name")
        self.required(p.network_name, "the network name")
        self.required(p.port_number, "the port number")
        self.required(p.published_service_file, "the published service file")

    def resolve(self) -> None:
        p = self.params
        names = self.context.names
        self.configuration_id = self.runtime_id(p.configuration_id, p.configuration_file, "Configuration")
        self.vm_id = names.vm_id_or_name(self.configuration_id, p.vm_id, p.vm_name)
        self.interface_id = names.interface_id(self.configuration_id, self.vm_id, p.network_name)
        self.logger.log(f"VM ID: {self.vm_id}")
        self.logger.log(f"Interface ID: {self.interface_id}")

    @property
    def services_path(self) -> str:
        return f"configurations/{self.configuration_id}/vms/{self.vm_id}/interfaces/{self.interface_id}/services"

    def save_service(self, body: Any) -> None:
        external_ip = responses.get_text_field(body, "external_ip")
        external_port = responses.get_text_field(body, "external_port")
        service = f"{external_ip}:{external_port}"
        path = self.save(self.params.published_service_file, service, "published service")
        self.logger.always_log(f"Published service {service} saved to file: {path}")


@register_step
class CreatePublishedServiceStep(PublishedServiceStep):
    action = "create_published_service"
    display_name = "Creating Published Service"

    def execute(self) -> bool:
        data = self.checked(self.gateway.post(self.services_path, params={"port": self.params.port_number}))
        self.logger.log(f"New service published on interface {self.interface_id}, port {self.params.port_number}")
        self.save_service(data)
        return True


@register_step
class ListPublishedServiceStep(PublishedServiceStep):
    action = "list_published_service"
    display_name = "Listing VM Published Service"

    def execute(self) -> bool:
        data = self.checked(self.gateway.get(f"{self.services_path}/{self.params.port_number}"))
        self.save_service(data)
        return True

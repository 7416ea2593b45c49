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

import json
import os
from dataclasses import dataclass
from string import Template
from typing import Any, Dict, List, Mapping, Optional

from skytap_ci.clients import responses
from skytap_ci.clients.gateway import HttpGateway
from skytap_ci.exceptions import ConfigurationError, ResourceNotFoundError
from skytap_ci.utils.log import StepLogger


@dataclass(frozen=True)
class ResourceHandle:
    """Direct id or descriptor file of a remote resource"""
    id: str = ""
    source_file: str = ""

    def resolve(self) -> str:
        return resolve(self.id, self.source_file)


def require_one_of(value_a: Optional[str], value_b: Optional[str], label: str) -> None:
    """Validate an either/or parameter pair

    Raises:
        ConfigurationError: If both or neither values were supplied
    """
    if value_a and value_b:
        raise ConfigurationError(
            f"Values were provided for both {label}. Please provide just one or the other."
        )
    if not value_a and not value_b:
        raise ConfigurationError(
            f"No value was provided for {label}. Please provide one of them."
        )


def read_descriptor(path: str) -> Any:
    """Load a JSON descriptor saved by an earlier step

    Raises:
        ResourceNotFoundError: If the file is missing, unreadable or not JSON
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ResourceNotFoundError(f"Descriptor file not found: {path}", {"path": path}) from e
    except ValueError as e:
        raise ResourceNotFoundError(f"Descriptor file is not valid JSON: {path}", {"path": path}) from e


def resolve(direct_id: Optional[str], source_file: Optional[str]) -> str:
    """Return the runtime id of a resource

    A non-empty ``source_file`` wins and its ``id`` field is returned,
    otherwise ``direct_id`` is returned as is.

    Raises:
        ResourceNotFoundError: If the descriptor cannot be read or has no id
    """
    if not source_file:
        return direct_id or ""

    descriptor = read_descriptor(source_file)
    value = descriptor.get("id") if isinstance(descriptor, dict) else None
    if value is None or value == "":
        raise ResourceNotFoundError(
            f"Descriptor file has no 'id' field: {source_file}", {"path": source_file}
        )
    return responses.as_text(value)


def write_descriptor(path: str, body: Any) -> None:
    """Persist a response body for downstream steps

    Strings are written verbatim, anything else is dumped as JSON.
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    content = body if isinstance(body, str) else json.dumps(body, indent=2)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


class WorkspacePaths:
    """Expand ``${VAR}`` references and anchor bare filenames in the workspace"""

    def __init__(self, workspace: str, environ: Optional[Mapping[str, str]] = None):
        self.workspace = workspace
        self.environ = dict(os.environ if environ is None else environ)

    def expand(self, value: Optional[str]) -> str:
        if not value:
            return ""
        return Template(value).safe_substitute(self.environ)

    def full_path(self, filename: str) -> str:
        # a bare filename lands in the workspace, anything with a directory is kept
        if os.path.dirname(filename):
            return filename
        return os.path.join(self.workspace, filename)

    def resolve_file(self, value: Optional[str]) -> str:
        """Expand a file parameter; empty stays empty"""
        expanded = self.expand(value)
        if not expanded:
            return ""
        return self.full_path(expanded)


class NameResolver:
    """Look up provider ids by the human readable names users put in pipelines"""

    def __init__(self, gateway: HttpGateway, logger: StepLogger):
        self.gateway = gateway
        self.logger = logger

    def _fetch(self, path: str) -> Any:
        response = self.gateway.get(path)
        return responses.raise_for_error(response.body)

    def _match(self, items: Any, name: str, what: str, key: str = "name") -> Dict[str, Any]:
        self.logger.log(f"Searching for {what}: {name}")
        for item in items or []:
            if isinstance(item, dict) and item.get(key) == name:
                self.logger.log(f"{what.capitalize()} matched, id {item.get('id')}")
                return item
        raise ResourceNotFoundError(f"No {what} matching name \"{name}\" was found.", {"name": name})

    def _list_field(self, path: str, field: str) -> List[Any]:
        data = self._fetch(path)
        if not isinstance(data, dict):
            return []
        return data.get(field) or []

    def network_id(self, configuration_id: str, network_name: str) -> str:
        networks = self._list_field(f"configurations/{configuration_id}", "networks")
        return responses.as_text(self._match(networks, network_name, "network")["id"])

    def vm_id(self, configuration_id: str, vm_name: str) -> str:
        vms = self._list_field(f"configurations/{configuration_id}", "vms")
        return responses.as_text(self._match(vms, vm_name, "VM")["id"])

    def project_id(self, project_name: str) -> str:
        projects = self._fetch("projects")
        return responses.as_text(self._match(projects, project_name, "project")["id"])

    def container_registry_id(self, registry_name: str) -> str:
        registries = self._fetch("container_registries")
        return responses.as_text(self._match(registries, registry_name, "container registry")["id"])

    def vm_container_id(self, configuration_id: str, vm_id: str, container_name: str) -> str:
        containers = self._fetch(f"configurations/{configuration_id}/vms/{vm_id}/containers")
        return responses.as_text(self._match(containers, container_name, "container")["id"])

    def interface_id(self, configuration_id: str, vm_id: str, network_name: str) -> str:
        interfaces = self._list_field(f"configurations/{configuration_id}/vms/{vm_id}", "interfaces")
        match = self._match(interfaces, network_name, "interface on network", key="network_name")
        return responses.as_text(match["id"])

    def vm_id_or_name(self, configuration_id: str, vm_id: str, vm_name: str) -> str:
        if vm_name:
            return self.vm_id(configuration_id, vm_name)
        return vm_id

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
Network connectivity steps.

Both operations are idempotent for the pipeline but not for the API, which
errors on a duplicate attach or tunnel. The existing connection is checked
first and an "already connected" answer counts as success.
"""

from pydantic import Field

import skytap_ci.clients.constants as constants
from skytap_ci.clients import responses
from skytap_ci.exceptions import GatewayError, ProviderError, ResponseParseError
from skytap_ci.polling import CheckResult, poll_until, request_action
from skytap_ci.steps.base import Step, StepParams, register_step
from skytap_ci.utils.utils import pause


class ConnectToVPNParams(StepParams):
    configuration_id: str = Field("", description="Environment owning the network")
    configuration_file: str = Field("", description="Descriptor file of the environment")
    network_name: str = Field("", description="Name of the environment network to connect")
    vpn_id: str = Field("", description="VPN to attach and connect")


@register_step
class ConnectToVPNStep(Step):
    action = "connect_to_vpn"
    display_name = "Connecting Configuration to VPN"
    params_model = ConnectToVPNParams

    def preflight(self) -> None:
        self.either(self.params.configuration_id, self.params.configuration_file, "configuration ID and file")
        self.required(self.params.vpn_id, "VPN ID")
        self.required(self.params.network_name, "the configuration network name")

    def resolve(self) -> None:
        self.configuration_id = self.runtime_id(
            self.params.configuration_id, self.params.configuration_file, "Configuration"
        )
        self.network_id = self.context.names.network_id(self.configuration_id, self.params.network_name)
        self.vpn_id = self.params.vpn_id
        self.logger.log(f"Network ID: {self.network_id}")
        self.logger.log(f"VPN ID: {self.vpn_id}")

    @property
    def vpns_path(self) -> str:
        return f"configurations/{self.configuration_id}/networks/{self.network_id}/vpns"

    def is_connected(self) -> bool:
        self.logger.log(f"Verifying if network {self.network_id} is already connected to VPN {self.vpn_id}")
        response = self.gateway.get(f"{self.vpns_path}/{self.vpn_id}")
        return responses.read_connectivity(response.body)

    def attach(self):
        return self.gateway.post(self.vpns_path, body={"id": self.vpn_id})

    def connect(self):
        return self.gateway.put(f"{self.vpns_path}/{self.vpn_id}", body={"connected": True})

    def execute(self) -> bool:
        if self.is_connected():
            self.logger.always_log(f"Network is already connected to VPN: {self.vpn_id}. Passing build step.")
            return True
        self.logger.log(f"Network is not currently connected to VPN: {self.vpn_id}")

        self.logger.log("Attaching VPN to Environment ...")
        if not self._poll(self.attach):
            self.logger.error("VPN attach has failed. Failing build step.")
            return False
        self.logger.log(f"VPN {self.vpn_id} successfully attached to network {self.network_id}.")

        self.logger.log("Connecting VPN to Environment ...")
        if not self._poll(self.connect):
            self.logger.error("VPN connect has failed. Failing build step.")
            return False
        self.logger.always_log(f"VPN {self.vpn_id} successfully connected to network {self.network_id}.")

        # let the VPN and environment settle
        pause(self.context.poll_options.interval_seconds, self.logger, self.context.sleep)
        return True

    def _poll(self, send) -> bool:
        return poll_until(
            request_action(send),
            options=self.context.poll_options,
            logger=self.logger,
            sleep=self.context.sleep,
        )


class NetworkConnectParams(StepParams):
    source_configuration_id: str = Field("", description="Environment owning the source network")
    source_configuration_file: str = Field("", description="Descriptor file of the source environment")
    source_network_name: str = Field("", description="Name of the source network")
    target_configuration_id: str = Field("", description="Environment owning the target network")
    target_configuration_file: str = Field("", description="Descriptor file of the target environment")
    target_network_name: str = Field("", description="Name of the target network")


@register_step
class NetworkConnectStep(Step):
    """Connect two environment networks with a tunnel"""

    action = "network_connect"
    display_name = "Connecting Networks"
    params_model = NetworkConnectParams

    def preflight(self) -> None:
        p = self.params
        self.either(p.source_configuration_id, p.source_configuration_file, "source configuration ID and file")
        self.either(p.target_configuration_id, p.target_configuration_file, "target configuration ID and file")
        self.required(p.source_network_name, "the source network name")
        self.required(p.target_network_name, "the target network name")

    def resolve(self) -> None:
        p = self.params
        names = self.context.names
        self.source_configuration_id = self.runtime_id(
            p.source_configuration_id, p.source_configuration_file, "Source Configuration"
        )
        self.target_configuration_id = self.runtime_id(
            p.target_configuration_id, p.target_configuration_file, "Target Configuration"
        )
        self.source_network_id = names.network_id(self.source_configuration_id, p.source_network_name)
        self.target_network_id = names.network_id(self.target_configuration_id, p.target_network_name)

    def is_connected(self) -> bool:
        """Whether the source network already has a tunnel to the target network"""
        path = f"configurations/{self.source_configuration_id}/networks/{self.source_network_id}"
        network = self.checked(self.gateway.get(path))
        for tunnel in (network or {}).get("tunnels") or []:
            target = tunnel.get("target_network") or {}
            if responses.as_text(target.get("id")) == self.target_network_id:
                return True
        return False

    def check_target(self) -> CheckResult:
        path = f"configurations/{self.target_configuration_id}/networks/{self.target_network_id}"
        try:
            response = self.gateway.get(path)
            responses.raise_for_error(response.body)
            status = responses.get_text_field(response.body, "status")
        except (GatewayError, ProviderError, ResponseParseError) as e:
            return CheckResult.error(str(e))
        if status == constants.NOT_BUSY_STATUS:
            self.logger.log("Target network is available.")
            return CheckResult.available()
        return CheckResult.busy("target network is busy")

    def connect(self):
        self.logger.log(
            f"Sending network connection request for source: {self.source_network_id} "
            f"to target: {self.target_network_id}"
        )
        return self.gateway.post(
            "tunnels",
            params={
                "source_network_id": self.source_network_id,
                "target_network_id": self.target_network_id,
            },
        )

    def execute(self) -> bool:
        if self.is_connected():
            self.logger.always_log(
                f"Network {self.source_network_id} is already connected to network "
                f"{self.target_network_id}. Passing build step."
            )
            return True

        connected = poll_until(
            request_action(self.connect),
            check=self.check_target,
            options=self.context.poll_options,
            logger=self.logger,
            sleep=self.context.sleep,
        )
        if connected:
            self.logger.always_log(
                f"Networks {self.params.source_network_name} and {self.params.target_network_name} "
                "are connected."
            )
        return connected

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
Pipeline runner.

A pipeline file lists steps by action tag:

    steps:
      - action: create_configuration
        params:
          template_id: "1234"
          configuration_file: env.json
      - action: change_configuration_state
        params:
          configuration_file: env.json
          target_run_state: running

Steps run in order and the first failure stops the pipeline.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from skytap_ci import config
from skytap_ci.clients.credentials import Credentials
from skytap_ci.clients.gateway import HttpGateway
from skytap_ci.exceptions import ConfigurationError, SkytapError
from skytap_ci.polling import PollOptions
from skytap_ci.resolver import WorkspacePaths
from skytap_ci.steps import STEP_TYPES, Step, StepContext
from skytap_ci.utils.log import StepLogger


class PipelineStep(BaseModel):
    """One entry of a pipeline file"""

    action: str = Field(..., description="Action tag selecting the step variant")
    name: Optional[str] = Field(None, description="Optional label shown in the logs")
    params: Dict[str, Any] = Field(default_factory=dict, description="Step parameters")

    @field_validator("action")
    @classmethod
    def validate_action(cls, v):
        if v not in STEP_TYPES:
            raise ValueError(f"Unknown action '{v}'. Available actions: {sorted(STEP_TYPES)}")
        return v


class Pipeline(BaseModel):
    steps: List[PipelineStep] = Field(default_factory=list, description="Steps in execution order")


def load_pipeline(path: Union[str, Path]) -> Pipeline:
    """
    Load and validate a pipeline file.

    Raises:
        ConfigurationError: If the file is missing, not YAML or invalid
    """
    pipeline_file = Path(path)
    if not pipeline_file.exists():
        raise ConfigurationError(f"Pipeline file not found: {pipeline_file}")

    try:
        with open(pipeline_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in pipeline file: {e}") from e

    if isinstance(data, list):
        data = {"steps": data}
    try:
        return Pipeline(**data)
    except (TypeError, ValidationError) as e:
        raise ConfigurationError(f"Invalid pipeline file {pipeline_file}: {e}") from e


class StepRunner:
    """Runs steps against one authenticated gateway, failing fast"""

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        logger: Optional[StepLogger] = None,
        gateway: Optional[HttpGateway] = None,
        workspace: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        poll_options: Optional[PollOptions] = None,
    ):
        self.logger = logger or StepLogger(verbose=config.is_logging_enabled())
        if gateway is None:
            gateway = HttpGateway(
                credentials or Credentials.from_env(),
                self.logger,
                api_url=config.get_api_url(),
                sleep=sleep,
            )
        self.gateway = gateway
        self.context = StepContext(
            gateway=self.gateway,
            logger=self.logger,
            paths=WorkspacePaths(workspace or config.get_workspace()),
            sleep=sleep,
            poll_options=poll_options or PollOptions(),
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return None

    def build_step(self, action: str, params: Optional[Dict[str, Any]] = None) -> Step:
        step_type = STEP_TYPES.get(action)
        if step_type is None:
            raise ConfigurationError(f"Unknown action '{action}'", {"action": action})
        return step_type(params or {}, self.context)

    def run_step(self, action: str, params: Optional[Dict[str, Any]] = None) -> bool:
        try:
            step = self.build_step(action, params)
        except SkytapError as e:
            self.logger.error(str(e))
            return False
        return step.execute_step()

    def run(self, pipeline: Pipeline) -> bool:
        """Execute every step in order, stopping at the first failure"""
        total = len(pipeline.steps)
        for index, entry in enumerate(pipeline.steps, start=1):
            label = entry.name or entry.action
            self.logger.log(f"Step {index}/{total}: {label}")
            if not self.run_step(entry.action, entry.params):
                self.logger.error(f"Step {index}/{total} ({label}) failed. Stopping pipeline.")
                return False
        self.logger.always_log(f"All {total} steps completed successfully.")
        return True

    def close(self):
        self.gateway.close()

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

import os
import time
from typing import Callable, Optional

from skytap_ci.utils.log import StepLogger


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable, treating blank values as unset

    Args:
        name: Variable name
        default: Value returned when the variable is unset or blank

    Returns:
        The variable's value, or default
    """
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value


def get_first_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-blank value among several variable names"""
    for name in names:
        value = get_env(name)
        if value is not None:
            return value
    return default


def as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def pause(seconds: float, logger: StepLogger, sleep: Callable[[float], None] = time.sleep) -> None:
    """Block for ``seconds``; an interrupted wait is logged and ignored

    ``time.sleep`` itself resumes after a signal (PEP 475), so only a sleep
    callable that raises InterruptedError, such as one wrapping an event
    wait, reaches the except branch.
    """
    if seconds <= 0:
        return
    try:
        sleep(seconds)
    except InterruptedError as e:
        logger.error(f"Wait interrupted, continuing: {e}")

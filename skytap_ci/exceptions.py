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

class SkytapError(Exception):
    """Base exception class for all skytap-ci errors"""
    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}
        self.code = getattr(self, 'code', 500)

class ConfigurationError(SkytapError):
    """Invalid or incomplete step configuration"""
    code = 400

class ResourceNotFoundError(SkytapError):
    """Descriptor file or named resource could not be found"""
    code = 404

class ResponseParseError(SkytapError):
    """Response body is not JSON or lacks an expected field"""
    code = 502

class ProviderError(SkytapError):
    """Raised when the Skytap API returns an error envelope"""
    code = 502

    def __init__(self, message: str, signal=None, context: dict = None):
        super().__init__(message, context)
        self.signal = signal

class GatewayError(SkytapError):
    """Transport failure that persisted through the gateway's retries"""
    code = 503

class ResourceLockedError(GatewayError):
    """Resource kept answering 423 Locked"""
    code = 423

class ConflictError(GatewayError):
    """Request was rejected with 409 Conflict"""
    code = 409

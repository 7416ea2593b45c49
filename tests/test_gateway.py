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
import socket
import threading
import unittest
from unittest.mock import Mock, patch

import requests.exceptions

from skytap_ci.clients.credentials import Credentials
from skytap_ci.clients.gateway import HttpGateway
from skytap_ci.exceptions import ConfigurationError, ConflictError, GatewayError, ResourceLockedError
from skytap_ci.utils.http import create_session


def http_response(status_code=200, text="", reason="OK"):
    resp = Mock()
    resp.status_code = status_code
    resp.text = text
    resp.reason = reason
    return resp


class SilentServer:
    """Local TCP server that accepts connections and never answers"""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(32)
        self.sock.settimeout(0.05)
        self.accepted = []
        self.stopped = threading.Event()
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    @property
    def url(self):
        return f"http://127.0.0.1:{self.sock.getsockname()[1]}"

    def _serve(self):
        while not self.stopped.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self.accepted.append(conn)

    def close(self):
        self.stopped.set()
        self.thread.join()
        for conn in self.accepted:
            conn.close()
        self.sock.close()


class TestCredentials(unittest.TestCase):
    def test_authorization_header(self):
        creds = Credentials(user_id="user", auth_key="key")
        self.assertEqual(creds.token, "dXNlcjprZXk=")
        self.assertEqual(creds.authorization, "Basic dXNlcjprZXk=")

    def test_repr_masks_key(self):
        self.assertNotIn("secret", repr(Credentials(user_id="user", auth_key="secret")))

    @patch.dict(os.environ, {"SKYTAP_USER_ID": "u", "SKYTAP_AUTH_KEY": "k"}, clear=True)
    def test_from_env(self):
        creds = Credentials.from_env()
        self.assertEqual((creds.user_id, creds.auth_key), ("u", "k"))

    @patch.dict(os.environ, {"userId": "wrapped", "authKey": "wrapped-key"}, clear=True)
    def test_from_wrapper_env(self):
        self.assertEqual(Credentials.from_env().user_id, "wrapped")

    @patch.dict(os.environ, {"SKYTAP_USER_ID": "u"}, clear=True)
    def test_missing_key_raises(self):
        with self.assertRaises(ConfigurationError):
            Credentials.from_env()


class TestCreateSession(unittest.TestCase):
    def test_headers(self):
        session = create_session(authorization="Basic abc")
        self.assertEqual(session.headers["Authorization"], "Basic abc")
        self.assertEqual(session.headers["Accept"], "application/json")
        self.assertEqual(session.headers["Content-Type"], "application/json")
        session.close()

    def test_adapter_retries_statuses_only(self):
        session = create_session()
        retry = session.get_adapter("https://cloud.example.com").max_retries

        self.assertEqual((retry.connect, retry.read, retry.other), (0, 0, 0))
        self.assertEqual(retry.status, 3)
        self.assertEqual(tuple(retry.status_forcelist), (502, 503, 504))
        session.close()


class TestGatewayAgainstSilentServer(unittest.TestCase):
    def setUp(self):
        self.server = SilentServer()
        self.addCleanup(self.server.close)

    def test_hung_requests_are_bounded_to_five_attempts(self):
        gateway = HttpGateway(Credentials("u", "k"), Mock(), api_url=self.server.url, timeout=0.2)
        self.addCleanup(gateway.close)

        with self.assertRaises(GatewayError):
            gateway.get("configurations/1")

        self.assertEqual(len(self.server.accepted), 5)


class TestHttpGateway(unittest.TestCase):
    def setUp(self):
        self.session = Mock()
        self.sleep = Mock()
        self.gateway = HttpGateway(
            Credentials("u", "k"),
            Mock(),
            api_url="https://cloud.example.com/",
            session=self.session,
            sleep=self.sleep,
        )

    def test_url_joins_base_and_path(self):
        self.assertEqual(self.gateway.url("/configurations/1"), "https://cloud.example.com/configurations/1")

    def test_request_passes_params_body_and_timeout(self):
        self.session.request.return_value = http_response(200, '{"id":"1"}')

        result = self.gateway.put("configurations/1", params={"runstate": "running"}, body={"a": 1})

        self.assertTrue(result.ok)
        self.assertEqual(result.body, '{"id":"1"}')
        self.session.request.assert_called_once_with(
            "PUT",
            "https://cloud.example.com/configurations/1",
            params={"runstate": "running"},
            json={"a": 1},
            timeout=(60.0, 60.0),
        )

    def test_locked_is_retried(self):
        self.session.request.side_effect = [
            http_response(423, reason="Locked"),
            http_response(423, reason="Locked"),
            http_response(200, "{}"),
        ]

        result = self.gateway.get("configurations/1")

        self.assertEqual(result.status_code, 200)
        self.assertEqual(self.session.request.call_count, 3)
        self.assertEqual(self.sleep.call_count, 2)
        self.sleep.assert_called_with(15)

    def test_interrupted_locked_wait_still_retries(self):
        self.sleep.side_effect = InterruptedError("signal")
        self.session.request.side_effect = [http_response(423, reason="Locked"), http_response(200, "{}")]

        self.assertTrue(self.gateway.get("configurations/1").ok)
        self.assertEqual(self.session.request.call_count, 2)

    def test_locked_gives_up_after_five_attempts(self):
        self.session.request.return_value = http_response(423, reason="Locked")

        with self.assertRaises(ResourceLockedError):
            self.gateway.get("configurations/1")
        self.assertEqual(self.session.request.call_count, 5)

    def test_conflict_raises_immediately(self):
        self.session.request.return_value = http_response(409, '{"error":"conflict"}', "Conflict")

        with self.assertRaises(ConflictError) as ctx:
            self.gateway.post("tunnels")
        self.assertEqual(self.session.request.call_count, 1)
        self.assertEqual(ctx.exception.context["body"], '{"error":"conflict"}')

    def test_timeout_is_retried(self):
        self.session.request.side_effect = [
            requests.exceptions.Timeout("slow"),
            http_response(200, "{}"),
        ]

        self.assertTrue(self.gateway.get("configurations/1").ok)
        self.assertEqual(self.session.request.call_count, 2)

    def test_timeout_gives_up(self):
        self.session.request.side_effect = requests.exceptions.Timeout("slow")

        with self.assertRaises(GatewayError):
            self.gateway.get("configurations/1")
        self.assertEqual(self.session.request.call_count, 5)

    def test_other_request_errors_raise(self):
        self.session.request.side_effect = requests.exceptions.InvalidURL("bad")

        with self.assertRaises(GatewayError):
            self.gateway.get("configurations/1")
        self.assertEqual(self.session.request.call_count, 1)

    def test_error_statuses_are_returned(self):
        self.session.request.return_value = http_response(404, '{"error":"not found"}', "Not Found")

        result = self.gateway.get("configurations/1")

        self.assertFalse(result.ok)
        self.assertEqual(result.status_line, "HTTP 404 Not Found")

    def test_context_manager_closes_session(self):
        with self.gateway:
            pass
        self.session.close.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()

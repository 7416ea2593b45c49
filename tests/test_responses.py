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

import unittest

from skytap_ci.clients import responses
from skytap_ci.clients.responses import GENERIC_ERROR_MESSAGE, SignalKind
from skytap_ci.exceptions import ProviderError, ResponseParseError


class TestCheckForError(unittest.TestCase):
    def test_no_error_shapes(self):
        for body in (None, "", "   ", "{}", '{"error":null}', '{"error":false}', '{"error":""}', "[]", '[{"id":"1"}]'):
            with self.subTest(body=body):
                self.assertIsNone(responses.check_for_error(body))

    def test_already_decoded_values(self):
        self.assertIsNone(responses.check_for_error({"id": "1"}))
        self.assertIsNone(responses.check_for_error([]))
        self.assertIsNotNone(responses.check_for_error({"error": "x"}))

    def test_error_string(self):
        signal = responses.check_for_error('{"error":"x"}')
        self.assertEqual(signal.message, "x")
        self.assertIs(signal.kind, SignalKind.HARD_ERROR)
        self.assertTrue(signal.is_hard_error)

    def test_error_true_has_generic_message(self):
        signal = responses.check_for_error('{"error":true}')
        self.assertEqual(signal.message, GENERIC_ERROR_MESSAGE)
        self.assertTrue(signal.is_hard_error)

    def test_errors_array_is_joined(self):
        signal = responses.check_for_error('{"errors":["a","b"]}')
        self.assertEqual(signal.message, "a\nb")

    def test_empty_errors_array_still_an_error(self):
        signal = responses.check_for_error('{"errors":[]}')
        self.assertEqual(signal.message, GENERIC_ERROR_MESSAGE)

    def test_informational_messages_are_classified(self):
        not_attached = responses.check_for_error('{"error":"Environment not attached to VPN vpn-1"}')
        self.assertIs(not_attached.kind, SignalKind.NOT_YET_CONNECTED)

        connected = responses.check_for_error('{"errors":["The networks are already connected"]}')
        self.assertIs(connected.kind, SignalKind.ALREADY_CONNECTED)

    def test_busy_messages_are_transient(self):
        signal = responses.check_for_error('{"error":"The resource is busy. Try again later."}')
        self.assertIs(signal.kind, SignalKind.BUSY)
        self.assertTrue(signal.is_transient)

    def test_invalid_json_raises(self):
        with self.assertRaises(ResponseParseError):
            responses.check_for_error("<html>oops</html>")


class TestFields(unittest.TestCase):
    def test_get_field(self):
        self.assertEqual(responses.get_field('{"runstate":"running"}', "runstate"), "running")

    def test_get_text_field_renders_scalars(self):
        self.assertEqual(responses.get_text_field('{"id":123}', "id"), "123")
        self.assertEqual(responses.get_text_field('{"busy":true}', "busy"), "true")

    def test_missing_field_raises(self):
        with self.assertRaises(ResponseParseError):
            responses.get_field('{"id":"1"}', "runstate")
        with self.assertRaises(ResponseParseError):
            responses.get_field('{"runstate":null}', "runstate")

    def test_empty_or_array_body_raises(self):
        with self.assertRaises(ResponseParseError):
            responses.get_field("", "runstate")
        with self.assertRaises(ResponseParseError):
            responses.get_field("[]", "runstate")

    def test_raise_for_error(self):
        self.assertEqual(responses.raise_for_error('{"id":"1"}'), {"id": "1"})
        with self.assertRaises(ProviderError) as ctx:
            responses.raise_for_error('{"error":"nope"}')
        self.assertEqual(ctx.exception.signal.message, "nope")


class TestReadConnectivity(unittest.TestCase):
    def test_not_attached_means_not_connected(self):
        self.assertFalse(responses.read_connectivity('{"error":"Environment not attached to VPN"}'))

    def test_already_connected_error_means_connected(self):
        self.assertTrue(responses.read_connectivity('{"error":"networks are already connected"}'))

    def test_connected_flag(self):
        self.assertTrue(responses.read_connectivity('{"id":"vpn-1","connected":true}'))
        self.assertFalse(responses.read_connectivity('{"id":"vpn-1","connected":false}'))

    def test_hard_error_raises(self):
        with self.assertRaises(ProviderError):
            responses.read_connectivity('{"error":"VPN does not exist"}')


if __name__ == "__main__":
    unittest.main()

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
import unittest
from unittest.mock import Mock

from skytap_ci.clients.gateway import ApiResponse
from skytap_ci.exceptions import GatewayError
from skytap_ci.transitions import (
    CONFIGURATION_FORBIDDEN,
    ConfigurationResource,
    ContainerResource,
    EngineState,
    Outcome,
    TransitionEngine,
    TransitionOptions,
    TransitionRequest,
    VMContainerHostResource,
)


def ok(body):
    return ApiResponse(200, "OK", json.dumps(body))


def configuration_gateway(*states):
    """Gateway whose GETs report the given runstates in order"""
    gateway = Mock()
    gateway.get.side_effect = [ok({"id": "c1", "runstate": s}) for s in states]
    gateway.put.return_value = ok({"id": "c1"})
    return gateway


class TestTransitionEngine(unittest.TestCase):
    def setUp(self):
        self.sleep = Mock()
        self.engine = TransitionEngine(Mock(), sleep=self.sleep)

    def delays(self):
        return [c.args[0] for c in self.sleep.call_args_list]

    def test_forbidden_pairs_issue_no_request(self):
        for current, target in sorted(CONFIGURATION_FORBIDDEN):
            with self.subTest(current=current, target=target):
                gateway = configuration_gateway(current)

                outcome = self.engine.transition(
                    ConfigurationResource(gateway, "c1"), TransitionRequest.to_state(target)
                )

                self.assertIs(outcome.outcome, Outcome.FAILED_TERMINAL)
                self.assertEqual(outcome.cause, "transition not permitted")
                self.assertIs(self.engine.state, EngineState.TERMINAL)
                self.assertEqual(gateway.get.call_count, 1)
                gateway.put.assert_not_called()

    def test_already_in_target_is_one_get(self):
        gateway = configuration_gateway("running")

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("running"))

        self.assertTrue(outcome.succeeded)
        gateway.get.assert_called_once_with("configurations/c1")
        gateway.put.assert_not_called()
        self.sleep.assert_not_called()
        self.assertIs(self.engine.state, EngineState.CONVERGED)

    def test_unreadable_state_is_terminal(self):
        gateway = Mock()
        gateway.get.return_value = ok({"id": "c1"})

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("running"))

        self.assertIs(outcome.outcome, Outcome.FAILED_TERMINAL)
        self.assertEqual(outcome.cause, "current state unavailable")
        self.assertIs(self.engine.state, EngineState.TERMINAL)
        gateway.put.assert_not_called()

    def test_converges_after_polling(self):
        gateway = configuration_gateway("stopped", "stopped", "running")

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("running"))

        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(self.delays(), [20, 40])
        # initial request plus one re-issue after the first poll
        self.assertEqual(gateway.put.call_count, 2)
        gateway.put.assert_called_with("configurations/c1", params={"runstate": "running"})

    def test_exhaustion_uses_linear_backoff(self):
        gateway = configuration_gateway(*(["running"] * 6))

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("stopped"))

        self.assertIs(outcome.outcome, Outcome.FAILED_EXHAUSTED)
        self.assertEqual(self.delays(), [20, 40, 60, 80, 100])
        self.assertEqual(gateway.put.call_count, 6)
        self.assertIs(self.engine.state, EngineState.EXHAUSTED)

    def test_busy_skips_reissue_but_counts_attempt(self):
        gateway = configuration_gateway("stopped", "busy", "busy", "running")

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("running"))

        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.attempts, 3)
        gateway.put.assert_called_once()

    def test_request_errors_are_not_fatal(self):
        gateway = configuration_gateway("stopped", "running")
        gateway.put.side_effect = GatewayError("timeout")

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("running"))

        self.assertTrue(outcome.succeeded)

    def test_poll_fetch_failure_reissues(self):
        gateway = Mock()
        gateway.get.side_effect = [ok({"runstate": "stopped"}), GatewayError("timeout"), ok({"runstate": "running"})]
        gateway.put.return_value = ok({})

        outcome = self.engine.transition(ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("running"))

        self.assertTrue(outcome.succeeded)
        self.assertEqual(gateway.put.call_count, 2)

    def test_fallback_issues_exactly_one_request(self):
        gateway = configuration_gateway(*(["running"] * 6 + ["halted"]))
        options = TransitionOptions(fallback_state="halted")

        outcome = self.engine.transition(
            ConfigurationResource(gateway, "c1"), TransitionRequest.to_state("stopped"), options
        )

        self.assertTrue(outcome.succeeded)
        halted = [c for c in gateway.put.call_args_list if c.kwargs["params"]["runstate"] == "halted"]
        self.assertEqual(len(halted), 1)
        self.assertEqual(gateway.get.call_count, 7)
        self.assertEqual(self.delays(), [20, 40, 60, 80, 100, 60])

    def test_fallback_accepts_stopped_report(self):
        gateway = configuration_gateway(*(["running"] * 6 + ["stopped"]))

        outcome = self.engine.transition(
            ConfigurationResource(gateway, "c1"),
            TransitionRequest.to_state("stopped"),
            TransitionOptions(fallback_state="halted"),
        )

        self.assertTrue(outcome.succeeded)

    def test_fallback_failure(self):
        gateway = configuration_gateway(*(["running"] * 7))

        outcome = self.engine.transition(
            ConfigurationResource(gateway, "c1"),
            TransitionRequest.to_state("stopped"),
            TransitionOptions(fallback_state="halted"),
        )

        self.assertIs(outcome.outcome, Outcome.FAILED_EXHAUSTED)
        self.assertEqual(outcome.final_state, "running")

    def test_fallback_only_for_graceful_target(self):
        gateway = configuration_gateway(*(["stopped"] * 6))

        outcome = self.engine.transition(
            ConfigurationResource(gateway, "c1"),
            TransitionRequest.to_state("running"),
            TransitionOptions(fallback_state="halted"),
        )

        self.assertIs(outcome.outcome, Outcome.FAILED_EXHAUSTED)
        self.assertEqual(gateway.get.call_count, 6)


class TestContainerTransitions(unittest.TestCase):
    def setUp(self):
        self.sleep = Mock()
        self.engine = TransitionEngine(Mock(), sleep=self.sleep)

    def gateway(self, *statuses):
        gateway = Mock()
        gateway.get.side_effect = [ok({"id": 9, "status": s}) for s in statuses]
        gateway.put.return_value = ok({"id": 9})
        return gateway

    def test_action_targets(self):
        self.assertEqual(ContainerResource.request_for("unpause"), TransitionRequest("running", "unpause"))
        self.assertEqual(ContainerResource.request_for("kill").target_state, "exited")
        with self.assertRaises(ValueError):
            ContainerResource.request_for("restart")

    def test_illegal_container_actions(self):
        cases = [("exited", "pause"), ("paused", "stop"), ("paused", "start"), ("exited", "unpause")]
        for current, action in cases:
            with self.subTest(current=current, action=action):
                gateway = self.gateway(current)

                outcome = self.engine.transition(
                    ContainerResource(gateway, "9"), ContainerResource.request_for(action)
                )

                self.assertIs(outcome.outcome, Outcome.FAILED_TERMINAL)
                gateway.put.assert_not_called()

    def test_unpause_from_paused(self):
        gateway = self.gateway("paused", "running")

        outcome = self.engine.transition(
            ContainerResource(gateway, "9"),
            ContainerResource.request_for("unpause"),
            TransitionOptions(settle_after_success_seconds=10),
        )

        self.assertTrue(outcome.succeeded)
        gateway.get.assert_called_with("v2/containers/9.json")
        gateway.put.assert_called_once_with("v2/containers/9", params={"runstate": "unpause"})
        self.assertEqual([c.args[0] for c in self.sleep.call_args_list], [20, 10])


class TestVMContainerHost(unittest.TestCase):
    def test_enable_verifies_flag(self):
        gateway = Mock()
        gateway.get.side_effect = [ok({"container_host": False}), ok({"container_host": True})]
        gateway.put.return_value = ok({})
        engine = TransitionEngine(Mock(), sleep=Mock())

        outcome = engine.transition(
            VMContainerHostResource(gateway, "c1", "v1"), TransitionRequest.to_state("enabled")
        )

        self.assertTrue(outcome.succeeded)
        gateway.put.assert_called_once_with("configurations/c1/vms/v1", body={"container_host": True})


if __name__ == "__main__":
    unittest.main()

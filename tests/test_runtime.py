# SPDX-License-Identifier: BUSL-1.1
"""Tests for failure classification, the retry policy, and connections."""

import sys
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import docker.errors
import requests.exceptions
from docker.constants import DEFAULT_DOCKER_API_VERSION

from berth.config.resources import TransportSpec
from berth.runtime import (
    CONFLICT, IO_ERROR, NOT_FOUND, SERVER_ERROR, TIMEOUT, UNEXPECTED_RESPONSE,
    connect, failure_kind, is_retryable, tls_config, with_retries,
)
from fake_engine import api_error


class TestFailureKind(unittest.TestCase):
    def test_not_found(self):
        self.assertEqual(failure_kind(api_error(404)), NOT_FOUND)
        self.assertEqual(failure_kind(docker.errors.ImageNotFound("gone")), NOT_FOUND)

    def test_conflict(self):
        self.assertEqual(failure_kind(api_error(409)), CONFLICT)

    def test_server_error(self):
        self.assertEqual(failure_kind(api_error(500)), SERVER_ERROR)
        self.assertEqual(failure_kind(api_error(503)), SERVER_ERROR)

    def test_other_api_errors_are_unexpected_responses(self):
        self.assertEqual(failure_kind(api_error(400)), UNEXPECTED_RESPONSE)
        self.assertEqual(failure_kind(docker.errors.APIError("no response")), UNEXPECTED_RESPONSE)

    def test_timeouts(self):
        self.assertEqual(failure_kind(requests.exceptions.ReadTimeout("slow")), TIMEOUT)
        # ConnectTimeout is also a ConnectionError; timeout wins.
        self.assertEqual(failure_kind(requests.exceptions.ConnectTimeout("slow")), TIMEOUT)

    def test_io_errors(self):
        self.assertEqual(failure_kind(requests.exceptions.ConnectionError("reset")), IO_ERROR)
        self.assertEqual(failure_kind(requests.exceptions.ChunkedEncodingError("eof")), IO_ERROR)

    def test_local_os_errors_are_unknown(self):
        self.assertEqual(failure_kind(BrokenPipeError()), "")
        self.assertEqual(failure_kind(FileNotFoundError("/certs/ca.pem")), "")
        self.assertEqual(failure_kind(PermissionError("denied")), "")

    def test_unknown(self):
        self.assertEqual(failure_kind(ValueError("bad")), "")
        self.assertEqual(failure_kind(docker.errors.DockerException("sdk")), "")

    def test_retryable(self):
        self.assertTrue(is_retryable(api_error(500)))
        self.assertFalse(is_retryable(api_error(404)))
        self.assertFalse(is_retryable(api_error(409)))


class TestWithRetries(unittest.TestCase):
    def test_returns_result_without_retrying(self):
        op = mock.Mock(return_value="ok")
        self.assertEqual(with_retries(op, 5), "ok")
        self.assertEqual(op.call_count, 1)

    def test_timeout_exhausts_budget_then_raises(self):
        err = requests.exceptions.ReadTimeout("slow")
        op = mock.Mock(side_effect=err)
        with self.assertRaises(requests.exceptions.ReadTimeout) as ctx:
            with_retries(op, 4)
        self.assertIs(ctx.exception, err)
        self.assertEqual(op.call_count, 4)

    def test_not_found_is_not_retried(self):
        op = mock.Mock(side_effect=api_error(404))
        with self.assertRaises(docker.errors.NotFound):
            with_retries(op, 20)
        self.assertEqual(op.call_count, 1)

    def test_conflict_is_not_retried(self):
        op = mock.Mock(side_effect=api_error(409))
        with self.assertRaises(docker.errors.APIError):
            with_retries(op, 20)
        self.assertEqual(op.call_count, 1)

    def test_unknown_error_is_not_retried(self):
        op = mock.Mock(side_effect=KeyError("x"))
        with self.assertRaises(KeyError):
            with_retries(op, 20)
        self.assertEqual(op.call_count, 1)

    def test_missing_local_file_is_not_retried(self):
        op = mock.Mock(side_effect=FileNotFoundError("/certs/ca.pem"))
        with self.assertRaises(FileNotFoundError):
            with_retries(op, 5)
        self.assertEqual(op.call_count, 1)

    def test_recovers_after_transient_failures(self):
        op = mock.Mock(side_effect=[
            api_error(500),
            requests.exceptions.ConnectionError("reset"),
            api_error(400),
            "done",
        ])
        self.assertEqual(with_retries(op, 4), "done")
        self.assertEqual(op.call_count, 4)

    def test_zero_budget_still_attempts_once(self):
        op = mock.Mock(side_effect=api_error(500))
        with self.assertRaises(docker.errors.APIError):
            with_retries(op, 0)
        self.assertEqual(op.call_count, 1)


class TestConnection(unittest.TestCase):
    def test_tls_disabled_by_default(self):
        self.assertFalse(tls_config(TransportSpec()))

    def test_tls_config_from_transport(self):
        with mock.patch("berth.runtime.docker.tls.TLSConfig") as mock_tls:
            tls_config(TransportSpec(tls_verify=True, ca_cert="/ca.pem",
                                     client_cert="/cert.pem", client_key="/key.pem"))
        mock_tls.assert_called_once_with(
            client_cert=("/cert.pem", "/key.pem"), ca_cert="/ca.pem", verify=True,
        )

    def test_connect_uses_larger_timeout_and_no_tls_for_socket(self):
        with mock.patch("berth.runtime.docker.APIClient") as mock_client:
            connect("unix:///var/run/docker.sock",
                    TransportSpec(tls_verify=True, api_version="1.43"),
                    read_timeout=30, write_timeout=90)
        mock_client.assert_called_once_with(
            base_url="unix:///var/run/docker.sock", version="1.43", timeout=90, tls=False,
        )

    def test_connect_auto_resolves_server_version(self):
        with mock.patch("berth.runtime.docker.APIClient") as mock_client:
            mock_client.return_value.version.return_value = {"ApiVersion": "1.44"}
            client = connect("unix:///var/run/docker.sock")
        self.assertEqual(mock_client.call_args_list, [
            mock.call(base_url="unix:///var/run/docker.sock",
                      version=DEFAULT_DOCKER_API_VERSION, timeout=3600, tls=False),
            mock.call(base_url="unix:///var/run/docker.sock",
                      version="1.44", timeout=3600, tls=False),
        ])
        mock_client.return_value.version.assert_called_once_with(api_version=False)
        self.assertIs(client, mock_client.return_value)

    def test_connect_retries_version_lookup(self):
        with mock.patch("berth.runtime.docker.APIClient") as mock_client:
            mock_client.return_value.version.side_effect = [
                requests.exceptions.ConnectionError("connection refused"),
                {"ApiVersion": "1.44"},
            ]
            connect("unix:///var/run/docker.sock", retries=3)
        self.assertEqual(mock_client.return_value.version.call_count, 2)
        self.assertEqual(mock_client.call_args.kwargs["version"], "1.44")

    def test_connect_gives_up_after_budget(self):
        with mock.patch("berth.runtime.docker.APIClient") as mock_client:
            mock_client.return_value.version.side_effect = (
                requests.exceptions.ConnectionError("connection refused"))
            with self.assertRaises(requests.exceptions.ConnectionError):
                connect("unix:///var/run/docker.sock", retries=3)
        self.assertEqual(mock_client.return_value.version.call_count, 3)

    def test_connect_tcp_passes_tls(self):
        with mock.patch("berth.runtime.docker.APIClient") as mock_client:
            with mock.patch("berth.runtime.docker.tls.TLSConfig", return_value="TLS") as mock_tls:
                connect("tcp://10.0.0.5:2376", TransportSpec(tls_verify=True, api_version="1.41"))
        mock_tls.assert_called_once()
        mock_client.assert_called_once_with(
            base_url="tcp://10.0.0.5:2376", version="1.41", timeout=3600, tls="TLS",
        )


if __name__ == "__main__":
    unittest.main()

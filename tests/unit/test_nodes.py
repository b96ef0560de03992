"""
Unit tests for execution contexts and the node registry.

Tests node resolution, local execution, and remote execution over a mocked
ssh subprocess, including offline nodes, timeouts and cancellation.
"""

import json
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from filesfound.errors import (
    DirectoryNotFoundError,
    IOFailureError,
    NodeNotFoundError,
    NodeOfflineError,
    PatternSyntaxError,
    SearchInterruptedError,
)
from filesfound.models.config import FilesFoundSettings, NodeConfig, SearchSettings
from filesfound.models.search_config import SearchConfig
from filesfound.tools.nodes import (
    LOCAL_CONTEXT,
    LocalExecutionContext,
    MatchRequest,
    RemoteExecutionContext,
    StaticNodeRegistry,
    get_matcher_source,
    resolve_context,
)


def _mock_process(stdout="", stderr="", returncode=0):
    process = MagicMock()
    process.communicate.return_value = (stdout, stderr)
    process.returncode = returncode
    return process


class TestResolveContext:
    """Test cases for resolving node names."""

    def setup_method(self):
        self.remote = RemoteExecutionContext("builder-1", NodeConfig(host="b1.example.com"))
        self.registry = StaticNodeRegistry({"builder-1": self.remote})

    @pytest.mark.parametrize("node", [None, "", "master", "MASTER"])
    def test_local(self, node):
        assert resolve_context(self.registry, node) is LOCAL_CONTEXT

    def test_registered_node(self):
        assert resolve_context(self.registry, "builder-1") is self.remote

    def test_unknown_node(self):
        with pytest.raises(NodeNotFoundError) as exc_info:
            resolve_context(self.registry, "builder-7")

        assert exc_info.value.node == "builder-7"
        assert str(exc_info.value) == "The node does not exist: builder-7"

    def test_lookup_is_exact(self):
        with pytest.raises(NodeNotFoundError):
            resolve_context(self.registry, "Builder-1")


class TestStaticNodeRegistry:
    """Test cases for the StaticNodeRegistry class."""

    def test_register_and_names(self):
        registry = StaticNodeRegistry()
        registry.register("a", LocalExecutionContext())

        assert registry.names() == ["a"]
        assert registry.get("a") is not None
        assert registry.get("b") is None

    def test_node_items_list_master_first(self):
        registry = StaticNodeRegistry({"b1": LocalExecutionContext(), "b2": LocalExecutionContext()})
        assert registry.get_node_items() == ["master", "b1", "b2"]

    def test_from_settings(self):
        settings = FilesFoundSettings.from_dict({
            'nodes': {'builder-1': {'host': 'b1.example.com'}},
            'search': {'remote_timeout_seconds': 30},
        })

        registry = StaticNodeRegistry.from_settings(settings)
        context = registry.get("builder-1")

        assert isinstance(context, RemoteExecutionContext)
        assert context.name == "builder-1"
        assert context.timeout_seconds == 30


class TestMatchRequest:
    """Test cases for the MatchRequest class."""

    def test_from_config(self):
        config = SearchConfig(directory="/d", files="*.csv", ignored_files="tmp_*")
        settings = SearchSettings(default_excludes=True, case_sensitive=False)

        request = MatchRequest.from_config(config, settings)

        assert request.to_payload() == {
            'directory': "/d",
            'files': "*.csv",
            'ignored_files': "tmp_*",
            'empty_include_matches_all': False,
            'default_excludes': True,
            'case_sensitive': False,
        }


class TestLocalExecutionContext:
    """Test cases for searching in the current process."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        Path(self.temp_dir, "a.csv").write_text("a")
        Path(self.temp_dir, "tmp_a.csv").write_text("a")
        self.context = LocalExecutionContext()

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_name(self):
        assert self.context.name == "master"

    def test_run_match(self):
        request = MatchRequest(directory=self.temp_dir, files="*.csv", ignored_files="tmp_*")
        assert self.context.run_match(request) == ["a.csv"]

    def test_missing_directory(self):
        request = MatchRequest(directory=os.path.join(self.temp_dir, "missing"), files="*")
        with pytest.raises(DirectoryNotFoundError):
            self.context.run_match(request)

    def test_bad_pattern(self):
        request = MatchRequest(directory=self.temp_dir, files="a**")
        with pytest.raises(PatternSyntaxError):
            self.context.run_match(request)

    def test_cancelled(self):
        event = threading.Event()
        event.set()
        request = MatchRequest(directory=self.temp_dir, files="*")

        with pytest.raises(SearchInterruptedError):
            self.context.run_match(request, cancel_event=event)


class TestRemoteExecutionContext:
    """Test cases for searching on a remote node over ssh."""

    def setup_method(self):
        self.node = NodeConfig(host="b1.example.com", user="ci", port=2222, ssh_options=["-q"])
        self.context = RemoteExecutionContext("builder-1", self.node, timeout_seconds=5, poll_interval=0.01)
        self.request = MatchRequest(directory="/data/in", files="*.csv", ignored_files="tmp_*.csv")

    def test_build_command(self):
        command = self.context.build_command(self.request)

        assert command[:4] == ["ssh", "-o", "BatchMode=yes", "-q"]
        assert command[4:7] == ["-p", "2222", "ci@b1.example.com"]
        assert command[7:9] == ["python3", "-"]
        # The remote shell unquotes the request argument
        assert json.loads(shlex.split(command[9])[0]) == self.request.to_payload()

    def test_run_match_success(self):
        process = _mock_process(stdout=json.dumps({"files": ["a.csv"]}))

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process) as popen:
            files = self.context.run_match(self.request)

        assert files == ["a.csv"]
        assert popen.call_args[0][0][0] == "ssh"
        assert process.communicate.call_args[1]["input"] == get_matcher_source()

    def test_remote_directory_not_found(self):
        reply = {"error": "directory_not_found", "message": "The directory does not exist: /data/in"}
        process = _mock_process(stdout=json.dumps(reply))

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            with pytest.raises(DirectoryNotFoundError) as exc_info:
                self.context.run_match(self.request)

        assert str(exc_info.value) == "The directory does not exist: /data/in"

    def test_offline_node_is_not_contacted(self):
        context = RemoteExecutionContext("builder-2", NodeConfig(host="b2", offline=True))

        with patch("filesfound.tools.nodes.subprocess.Popen") as popen:
            with pytest.raises(NodeOfflineError) as exc_info:
                context.run_match(self.request)

        popen.assert_not_called()
        assert "The node is offline: builder-2" in str(exc_info.value)

    def test_connection_failure(self):
        process = _mock_process(stderr="ssh: connect to host b1 port 2222: Connection refused", returncode=255)

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            with pytest.raises(NodeOfflineError) as exc_info:
                self.context.run_match(self.request)

        assert "Connection refused" in str(exc_info.value)

    def test_ssh_not_available(self):
        with patch("filesfound.tools.nodes.subprocess.Popen", side_effect=FileNotFoundError("ssh")):
            with pytest.raises(NodeOfflineError):
                self.context.run_match(self.request)

    def test_remote_python_failure(self):
        process = _mock_process(stderr="python3: command not found", returncode=127)

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            with pytest.raises(IOFailureError) as exc_info:
                self.context.run_match(self.request)

        assert "127" in str(exc_info.value)

    def test_invalid_reply(self):
        process = _mock_process(stdout="Welcome to builder-1!\n")

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            with pytest.raises(IOFailureError):
                self.context.run_match(self.request)

    def test_timeout(self):
        context = RemoteExecutionContext("builder-1", self.node, timeout_seconds=0, poll_interval=0.01)
        process = _mock_process()
        process.communicate.side_effect = [subprocess.TimeoutExpired("ssh", 0.01), ("", "")]

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            with pytest.raises(NodeOfflineError):
                context.run_match(self.request)

        process.kill.assert_called_once()

    def test_cancelled_during_round_trip(self):
        event = threading.Event()
        process = _mock_process()

        def communicate(input=None, timeout=None):
            if not event.is_set():
                event.set()
                raise subprocess.TimeoutExpired("ssh", timeout)
            return ("", "")

        process.communicate.side_effect = communicate

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            with pytest.raises(SearchInterruptedError):
                self.context.run_match(self.request, cancel_event=event)

        process.kill.assert_called_once()

    def test_input_is_only_sent_once(self):
        process = _mock_process()
        process.communicate.side_effect = [
            subprocess.TimeoutExpired("ssh", 0.01),
            (json.dumps({"files": []}), ""),
        ]

        with patch("filesfound.tools.nodes.subprocess.Popen", return_value=process):
            assert self.context.run_match(self.request) == []

        first, second = process.communicate.call_args_list
        assert first[1]["input"] == get_matcher_source()
        assert second[1]["input"] is None


class TestShippedMatcher:
    """Test that the shipped matcher source runs standalone, as on a remote node."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        Path(self.temp_dir, "a.csv").write_text("a")
        Path(self.temp_dir, "b.txt").write_text("b")

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_source_runs_from_stdin(self):
        request = MatchRequest(directory=self.temp_dir, files="*.csv")

        completed = subprocess.run(
            [sys.executable, "-", json.dumps(request.to_payload())],
            input=get_matcher_source(),
            capture_output=True,
            text=True,
            timeout=60,
        )

        assert completed.returncode == 0, completed.stderr
        assert json.loads(completed.stdout) == {"files": ["a.csv"]}

"""
Unit tests for configuration models.

Tests the FilesFoundSettings model and its parts, validation of node names and
trigger patterns, and configuration warnings.
"""

import pytest
from pydantic import ValidationError

from filesfound.models.config import (
    FilesFoundSettings,
    GlobalPropertyConfig,
    NodeConfig,
    SearchSettings,
    validate_config_dict,
)
from filesfound.models.search_config import SearchConfig


class TestGlobalPropertyConfig:
    """Test cases for GlobalPropertyConfig class."""

    def test_values_become_strings(self):
        prop = GlobalPropertyConfig(env={"PORT": 8080, "DEBUG": True, "EMPTY": None})
        assert prop.env == {"PORT": "8080", "DEBUG": "True", "EMPTY": ""}

    def test_missing_env(self):
        assert GlobalPropertyConfig(env=None).env == {}

    def test_env_must_be_mapping(self):
        with pytest.raises(ValidationError):
            GlobalPropertyConfig(env=["A=1"])


class TestNodeConfig:
    """Test cases for NodeConfig class."""

    def test_defaults(self):
        node = NodeConfig(host="b1.example.com")

        assert node.user is None
        assert node.port == 22
        assert node.python == "python3"
        assert node.offline is False
        assert node.ssh_options == []
        assert node.get_target() == "b1.example.com"

    def test_target_with_user(self):
        assert NodeConfig(host=" b1 ", user="ci").get_target() == "ci@b1"

    @pytest.mark.parametrize("fields", [
        {"host": ""},
        {"host": "   "},
        {"host": "b1", "port": 0},
        {"host": "b1", "port": 70000},
        {"host": "b1", "python": " "},
    ])
    def test_invalid(self, fields):
        with pytest.raises(ValidationError):
            NodeConfig(**fields)


class TestSearchSettings:
    """Test cases for SearchSettings class."""

    def test_defaults(self):
        settings = SearchSettings()

        assert settings.empty_include_matches_all is False
        assert settings.default_excludes is False
        assert settings.case_sensitive is None
        assert settings.remote_timeout_seconds == 300
        assert settings.max_concurrent == 4

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            SearchSettings(max_concurrent=0)
        with pytest.raises(ValidationError):
            SearchSettings(remote_timeout_seconds=-1)


class TestFilesFoundSettings:
    """Test cases for FilesFoundSettings class."""

    def setup_method(self):
        self.data = {
            'global_properties': [{'env': {'DATA': '/data'}}],
            'nodes': {
                'builder-1': {'host': 'b1.example.com'},
                'builder-2': {'host': 'b2.example.com', 'offline': True},
            },
            'search': {'default_excludes': True},
            'triggers': [
                {'directory': '${DATA}/in', 'files': '*.csv', 'ignoredFiles': 'tmp_*.csv'},
                {'node': 'builder-1', 'directory': '/spool', 'files': '**/*.xml'},
            ],
        }

    def test_from_dict(self):
        settings = FilesFoundSettings.from_dict(self.data)

        assert settings.get_node_names() == ["builder-1", "builder-2"]
        assert settings.search.default_excludes is True
        assert settings.global_properties[0].env == {"DATA": "/data"}
        assert settings.get_search_configs() == [
            SearchConfig(directory="${DATA}/in", files="*.csv", ignored_files="tmp_*.csv"),
            SearchConfig(node="builder-1", directory="/spool", files="**/*.xml"),
        ]

    def test_defaults(self):
        settings = FilesFoundSettings()

        assert settings.triggers == []
        assert settings.nodes == {}
        assert settings.validate_configuration() == []

    def test_empty_sections(self):
        settings = FilesFoundSettings.from_dict({
            'global_properties': None, 'nodes': None, 'search': None, 'triggers': None,
        })

        assert settings.triggers == []
        assert settings.search == SearchSettings()

    def test_master_is_reserved(self):
        with pytest.raises(ValidationError) as exc_info:
            FilesFoundSettings.from_dict({'nodes': {'Master': {'host': 'x'}}})
        assert "reserved" in str(exc_info.value)

    def test_duplicate_node_names(self):
        with pytest.raises(ValidationError):
            FilesFoundSettings.from_dict({'nodes': {'b1': {'host': 'x'}, ' b1 ': {'host': 'y'}}})

    def test_nodes_must_be_mapping(self):
        with pytest.raises(ValidationError):
            FilesFoundSettings.from_dict({'nodes': ['b1']})

    def test_invalid_trigger_pattern(self):
        with pytest.raises(ValidationError):
            FilesFoundSettings.from_dict({'triggers': [{'directory': '/d', 'files': 'a**'}]})

    def test_pattern_with_placeholder_is_checked_later(self):
        settings = FilesFoundSettings.from_dict({'triggers': [{'directory': '/d', 'files': '${P}**'}]})
        assert len(settings.triggers) == 1

    def test_validate_configuration_warnings(self):
        self.data['triggers'].append({'node': 'builder-9', 'files': ''})
        settings = FilesFoundSettings.from_dict(self.data)

        warnings = settings.validate_configuration()

        assert "Trigger 3 has no directory" in warnings
        assert "Trigger 3 has no files pattern and will never find files" in warnings
        assert "Trigger 3 refers to an unknown node: builder-9" in warnings
        assert "Nodes marked offline: builder-2" in warnings
        assert len(warnings) == 4

    def test_placeholder_node_is_not_reported(self):
        settings = FilesFoundSettings.from_dict({
            'triggers': [{'node': '${NODE}', 'directory': '/d', 'files': '*'}],
        })
        assert settings.validate_configuration() == []

    def test_to_dict_round_trip(self):
        settings = FilesFoundSettings.from_dict(self.data)
        data = settings.to_dict()

        assert data['triggers'][0] == {
            'node': None, 'directory': '${DATA}/in', 'files': '*.csv', 'ignoredFiles': 'tmp_*.csv',
        }
        reloaded = FilesFoundSettings.from_dict(data)
        assert reloaded.get_search_configs() == settings.get_search_configs()
        assert reloaded.nodes == settings.nodes
        assert reloaded.search == settings.search

    def test_str(self):
        text = str(FilesFoundSettings.from_dict(self.data))
        assert "Triggers: 2" in text
        assert "Nodes: 2" in text


class TestValidateConfigDict:
    """Test cases for validate_config_dict."""

    def test_valid(self):
        data = validate_config_dict({'triggers': [{'directory': '/d', 'files': '*'}]})
        assert data['triggers'][0]['directory'] == '/d'
        assert data['search']['max_concurrent'] == 4

    def test_unknown_section(self):
        with pytest.raises(ValueError) as exc_info:
            validate_config_dict({'trigers': []})
        assert "Unknown configuration sections: trigers" in str(exc_info.value)

    def test_invalid_values(self):
        with pytest.raises(ValueError) as exc_info:
            validate_config_dict({'search': {'max_concurrent': 'many'}})
        assert "Configuration validation failed" in str(exc_info.value)

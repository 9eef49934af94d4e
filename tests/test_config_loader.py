import pytest
import yaml

from fleet_app_client.config_loader import load_config


def test_missing_config_yields_defaults(tmp_path):
    assert load_config(tmp_path / "absent.yaml") == {}


def test_loads_yaml_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mqtt:\n  host: broker.local\n  port: 8883\ntopic_prefix: fleet/prod\nrequest_timeout: null\n")

    config = load_config(str(path))

    assert config == {
        "mqtt": {"host": "broker.local", "port": 8883},
        "topic_prefix": "fleet/prod",
        "request_timeout": None,
    }


def test_empty_file_is_an_empty_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert load_config(path) == {}


def test_invalid_yaml_is_raised(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mqtt: [unclosed\n")

    with pytest.raises(yaml.YAMLError):
        load_config(path)


def test_non_mapping_document_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError):
        load_config(path)

"""Tests for configuration loading."""

import json

import pytest

from config import Config, ResourceRequest, load_config, load_resource_requests


class TestLoadConfig:

    def test_defaults(self):
        config = load_config({"EPIC_BASE_URL": "https://fhir.example.org/R4/", "CLIENT_ID": "abc"})

        assert config.is_valid()
        assert config.epic_base_url == "https://fhir.example.org/R4"
        assert config.metadata_url == "https://fhir.example.org/R4/metadata"
        assert config.scope == "openid fhirUser profile"
        assert config.redirect_uri == "http://localhost:4005/callback"
        assert config.initialization_path == "/launch"
        assert config.state_ttl_seconds == 300
        assert config.client_secret is None
        assert config.fetch_profile is False
        assert config.fetch_additional_resources is False
        assert config.open_browser is False
        assert config.show_token_in_browser is False
        assert config.exit_after_callback is True
        assert config.log_level == "info"

    def test_environment_values(self):
        config = load_config({
            "EPIC_BASE_URL": "https://fhir.example.org/R4",
            "CLIENT_ID": "abc",
            "CLIENT_SECRET": "s3cret",
            "HOST": "127.0.0.1",
            "PORT": "9000",
            "CALLBACK_PATH": "/epic/callback",
            "FETCH_PROFILE": "TRUE",
            "EXIT_AFTER_CALLBACK": "false",
            "LOG_LEVEL": "DEBUG",
        })

        assert config.client_secret == "s3cret"
        assert config.port == 9000
        assert config.redirect_uri == "http://127.0.0.1:9000/epic/callback"
        assert config.fetch_profile is True
        assert config.exit_after_callback is False
        assert config.log_level == "debug"

    def test_missing_required_values(self):
        config = load_config({"CLIENT_ID": "abc"})

        assert not config.is_valid()
        assert config.missing() == ["EPIC_BASE_URL"]

    def test_unusable_values_reported(self):
        config = load_config({
            "EPIC_BASE_URL": "https://fhir.example.org/R4",
            "CLIENT_ID": "abc",
            "PORT": "eighty",
            "LOG_LEVEL": "verbose",
        })

        problems = config.invalid()

        assert not config.is_valid()
        assert problems == [
            "PORT must be a number, got 'eighty'",
            "LOG_LEVEL must be one of error, warning, info, debug, got 'verbose'",
        ]

    def test_overrides_ignore_none(self):
        config = Config({"port": "4005", "open_browser": "true"})

        updated = config.with_overrides(port=8000, open_browser=False, host=None)

        assert updated.port == 8000
        assert updated.open_browser is False
        assert updated.host == "localhost"
        assert config.port == 4005


class TestLoadResourceRequests:

    def test_preserves_order(self, requests_file):
        requests = load_resource_requests(requests_file)

        assert requests == [
            ResourceRequest("Patient", {"family": "Lopez"}),
            ResourceRequest("Observation", {"category": "vital-signs"}),
            ResourceRequest("Condition", {}),
        ]

    def test_rejects_non_list(self, tmp_path):
        path = tmp_path / "requests.json"
        path.write_text(json.dumps({"resource": "Patient"}))

        with pytest.raises(ValueError):
            load_resource_requests(path)

    def test_rejects_entry_without_resource(self, tmp_path):
        path = tmp_path / "requests.json"
        path.write_text(json.dumps([{"params": {}}]))

        with pytest.raises(ValueError):
            load_resource_requests(path)

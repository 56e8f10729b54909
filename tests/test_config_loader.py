"""Tests for TRC configuration resolution.

Tests cover:
- YAML/JSON parsing and format detection
- $VAR / ${VAR} interpolation
- TRC_* environment overrides
- Provider and auth type inference (including ambiguity)
- Schema validation with aggregated, path-qualified issues
- Config serialization with masked secrets
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from trc.config.errors import ConfigError, ConfigIssue
from trc.config.loader import (
    apply_env_overrides,
    detect_format,
    format_from_path,
    infer_variants,
    interpolate_env,
    load_config,
    parse_config_text,
    resolve_config,
    serialize_config,
)
from trc.config.models import (
    JwtAuthConfig,
    LocalStorageConfig,
    S3StorageConfig,
    SharedSecretAuthConfig,
)

LOCAL_YAML = """
server:
  host: 127.0.0.1
  port: 8080
auth:
  type: jwt
  jwt:
    secret: file-secret
storage:
  provider: local
  local:
    rootDir: /var/cache/trc
"""


def _issue_paths(error: ConfigError) -> list[str]:
    return [issue.path for issue in error.issues]


class TestParsing:
    """Tests for parse_config_text and format detection."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("{}", "json"), ('  {"a": 1}', "json"), ("[1]", "json"), ("a: 1", "yaml"), ("", "yaml")],
    )
    def test_detect_format(self, text: str, expected: str) -> None:
        assert detect_format(text) == expected

    @pytest.mark.parametrize(
        ("path", "expected"),
        [("trc.json", "json"), ("trc.YAML", "yaml"), ("trc.yml", "yaml"), ("trc.conf", None)],
    )
    def test_format_from_path(self, path: str, expected: str | None) -> None:
        assert format_from_path(path) == expected

    def test_parse_yaml(self) -> None:
        assert parse_config_text("server:\n  port: 1\n") == {"server": {"port": 1}}

    def test_parse_json(self) -> None:
        assert parse_config_text('{"server": {"port": 1}}') == {"server": {"port": 1}}

    def test_empty_document_is_empty_mapping(self) -> None:
        assert parse_config_text("") == {}
        assert parse_config_text("# only a comment\n") == {}

    def test_explicit_format_overrides_detection(self) -> None:
        """YAML flow mappings start with '{' but parse as YAML when hinted."""
        assert parse_config_text("{server: {port: 1}}", fmt="yaml") == {"server": {"port": 1}}

    def test_invalid_yaml_reports_yaml_issue(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            parse_config_text("server: [unclosed")

        assert _issue_paths(exc_info.value) == ["(yaml)"]

    def test_invalid_json_reports_json_issue(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            parse_config_text('{"server": ')

        assert _issue_paths(exc_info.value) == ["(json)"]

    def test_non_mapping_root_is_rejected(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            parse_config_text("- a\n- b\n")

        assert _issue_paths(exc_info.value) == ["(root)"]


class TestInterpolation:
    """Tests for interpolate_env."""

    def test_bare_and_braced_placeholders(self) -> None:
        tree = {"auth": {"jwt": {"secret": "$SECRET"}}, "storage": {"s3": {"bucket": "${BUCKET}"}}}

        result, issues = interpolate_env(tree, {"SECRET": "s3cr3t", "BUCKET": "cache"})

        assert issues == []
        assert result == {"auth": {"jwt": {"secret": "s3cr3t"}}, "storage": {"s3": {"bucket": "cache"}}}

    def test_partial_strings_are_left_alone(self) -> None:
        tree = {"a": "prefix-$NAME", "b": "$NAME suffix", "c": 5}

        result, issues = interpolate_env(tree, {})

        assert issues == []
        assert result == tree

    def test_undefined_variable_is_reported_at_path(self) -> None:
        tree = {"storage": {"local": {"rootDir": "$MISSING"}}}

        result, issues = interpolate_env(tree, {})

        assert issues == [
            ConfigIssue("storage.local.rootDir", "Environment variable MISSING is not defined")
        ]
        assert result == tree

    def test_empty_placeholder_name_is_reported(self) -> None:
        _, issues = interpolate_env({"a": "${}", "b": "$"}, {})

        assert [issue.path for issue in issues] == ["a", "b"]

    def test_list_indices_appear_in_paths(self) -> None:
        _, issues = interpolate_env({"items": ["ok", "$NOPE"]}, {})

        assert issues[0].path == "items.1"

    def test_defined_empty_value_is_substituted(self) -> None:
        result, issues = interpolate_env({"a": "$EMPTY"}, {"EMPTY": ""})

        assert issues == []
        assert result == {"a": ""}


class TestEnvOverrides:
    """Tests for apply_env_overrides."""

    def test_overrides_replace_file_values(self) -> None:
        tree = {"server": {"host": "0.0.0.0", "port": 3000}}

        result = apply_env_overrides(tree, {"TRC_SERVER_PORT": "9000", "TRC_LOG_LEVEL": "debug"})

        assert result == {"server": {"host": "0.0.0.0", "port": "9000"}, "logging": {"level": "debug"}}
        assert tree == {"server": {"host": "0.0.0.0", "port": 3000}}

    def test_empty_values_are_ignored(self) -> None:
        result = apply_env_overrides({"server": {"port": 1}}, {"TRC_SERVER_PORT": ""})

        assert result == {"server": {"port": 1}}

    def test_nested_credential_paths(self) -> None:
        env = {
            "TRC_AUTH_SHARED_SECRET": "shh",
            "TRC_STORAGE_S3_ACCESS_KEY_ID": "AKIA",
            "TRC_STORAGE_S3_FORCE_PATH_STYLE": "true",
        }

        result = apply_env_overrides({}, env)

        assert result == {
            "auth": {"sharedSecret": {"secret": "shh"}},
            "storage": {"s3": {"accessKeyId": "AKIA", "forcePathStyle": "true"}},
        }


class TestInference:
    """Tests for infer_variants."""

    def test_single_storage_block_sets_provider(self) -> None:
        result, issues = infer_variants({"storage": {"s3": {"bucket": "b"}}})

        assert issues == []
        assert result["storage"]["provider"] == "s3"

    def test_single_auth_block_sets_type(self) -> None:
        result, issues = infer_variants({"auth": {"sharedSecret": {"secret": "x"}}})

        assert issues == []
        assert result["auth"]["type"] == "shared-secret"

    def test_explicit_values_are_kept(self) -> None:
        tree: dict[str, Any] = {"storage": {"provider": "local", "local": {}, "s3": {}}}

        result, issues = infer_variants(tree)

        assert issues == []
        assert result["storage"]["provider"] == "local"

    def test_ambiguous_blocks_are_reported(self) -> None:
        tree = {
            "storage": {"local": {"rootDir": "/x"}, "s3": {"bucket": "b"}},
            "auth": {"jwt": {"secret": "a"}, "sharedSecret": {"secret": "b"}},
        }

        _, issues = infer_variants(tree)

        assert [issue.path for issue in issues] == ["storage.provider", "auth.type"]


class TestResolveConfig:
    """End-to-end tests for resolve_config."""

    def test_resolves_local_yaml(self) -> None:
        config = resolve_config(LOCAL_YAML, {})

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 8080
        assert config.logging.level == "info"
        assert isinstance(config.auth, JwtAuthConfig)
        assert config.auth.jwt.secret.get_secret_value() == "file-secret"
        assert isinstance(config.storage, LocalStorageConfig)
        assert config.storage.local.root_dir == "/var/cache/trc"

    def test_server_defaults(self) -> None:
        config = resolve_config(
            json.dumps(
                {
                    "auth": {"jwt": {"secret": "x"}},
                    "storage": {"local": {"rootDir": "/tmp/x"}},
                }
            ),
            {},
        )

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 3000

    def test_env_only_configuration(self) -> None:
        env = {
            "TRC_AUTH_SHARED_SECRET": "shh",
            "TRC_STORAGE_S3_BUCKET": "cache",
            "TRC_STORAGE_S3_REGION": "us-east-1",
            "TRC_STORAGE_S3_FORCE_PATH_STYLE": "true",
            "TRC_SERVER_PORT": "4000",
        }

        config = resolve_config(None, env)

        assert isinstance(config.auth, SharedSecretAuthConfig)
        assert isinstance(config.storage, S3StorageConfig)
        assert config.storage.s3.force_path_style is True
        assert config.server.port == 4000

    def test_env_overrides_win_over_file(self) -> None:
        config = resolve_config(LOCAL_YAML, {"TRC_AUTH_JWT_SECRET": "env-secret"})

        assert isinstance(config.auth, JwtAuthConfig)
        assert config.auth.jwt.secret.get_secret_value() == "env-secret"

    def test_interpolated_values(self) -> None:
        text = LOCAL_YAML.replace("file-secret", "${JWT_SECRET}")

        config = resolve_config(text, {"JWT_SECRET": "from-env"})

        assert isinstance(config.auth, JwtAuthConfig)
        assert config.auth.jwt.secret.get_secret_value() == "from-env"

    def test_s3_without_bucket_reports_bucket_path(self) -> None:
        text = """
auth: {jwt: {secret: x}}
storage:
  provider: s3
  s3:
    region: us-east-1
"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(text, {})

        assert "storage.s3.bucket" in _issue_paths(exc_info.value)

    def test_issues_are_aggregated(self) -> None:
        text = """
server: {port: 70000}
logging: {level: loud}
storage: {provider: local, local: {rootDir: "$NOPE"}}
"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(text, {})

        paths = _issue_paths(exc_info.value)
        assert "storage.local.rootDir" in paths
        assert "server.port" in paths
        assert "logging.level" in paths
        assert "auth" in paths

    @pytest.mark.parametrize("port", ["0", "65536", "abc"])
    def test_port_range(self, port: str) -> None:
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(LOCAL_YAML, {"TRC_SERVER_PORT": port})

        assert _issue_paths(exc_info.value) == ["server.port"]

    def test_missing_discriminator_reported_at_tag_path(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            resolve_config("auth: {}\nstorage: {}\n", {})

        assert _issue_paths(exc_info.value) == ["auth.type", "storage.provider"]

    def test_unknown_provider_reported_at_tag_path(self) -> None:
        text = LOCAL_YAML.replace("provider: local", "provider: artifactory")

        with pytest.raises(ConfigError) as exc_info:
            resolve_config(text, {})

        assert _issue_paths(exc_info.value) == ["storage.provider"]

    def test_ambiguous_storage_is_single_issue(self) -> None:
        text = """
auth: {jwt: {secret: x}}
storage:
  local: {rootDir: /x}
  s3: {bucket: b, region: r}
"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(text, {})

        assert _issue_paths(exc_info.value) == ["storage.provider"]
        assert "Ambiguous" in exc_info.value.issues[0].message

    def test_s3_credentials_must_be_paired(self) -> None:
        text = """
auth: {jwt: {secret: x}}
storage:
  s3: {bucket: b, region: r, accessKeyId: AKIA}
"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(text, {})

        assert exc_info.value.issues == [
            ConfigIssue("storage.s3", "accessKeyId and secretAccessKey must be set together")
        ]

    def test_s3_endpoint_must_be_http_url(self) -> None:
        text = """
auth: {jwt: {secret: x}}
storage:
  s3: {bucket: b, region: r, endpoint: "minio:9000"}
"""
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(text, {})

        assert _issue_paths(exc_info.value) == ["storage.s3.endpoint"]

    def test_empty_secret_is_rejected(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            resolve_config(LOCAL_YAML.replace("file-secret", '""'), {})

        assert _issue_paths(exc_info.value) == ["auth.jwt.secret"]

    @pytest.mark.parametrize(
        ("env", "expected"),
        [
            ({}, True),
            ({"CI": "true"}, False),
            ({"CI": "1"}, False),
            ({"CI": "false"}, True),
            ({"TRC_ENV": "production"}, False),
            ({"CI": "true", "TRC_LOG_PRETTY": "true"}, True),
        ],
    )
    def test_pretty_default(self, env: dict[str, str], expected: bool) -> None:
        assert resolve_config(LOCAL_YAML, env).logging.pretty is expected

    def test_config_is_frozen(self) -> None:
        config = resolve_config(LOCAL_YAML, {})

        with pytest.raises(Exception):
            config.server.port = 1  # type: ignore[misc]


class TestLoadConfig:
    """Tests for load_config file handling."""

    def test_load_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "trc.yaml"
        path.write_text(LOCAL_YAML)

        assert load_config(path, {}).server.port == 8080

    def test_load_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "trc.json"
        path.write_text(json.dumps(yaml.safe_load(LOCAL_YAML)))

        assert load_config(path, {}).server.port == 8080

    def test_missing_required_file_is_file_issue(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path / "nope.yaml", {})

        assert exc_info.value.message.startswith("Unable to read config file")
        assert _issue_paths(exc_info.value) == ["(file)"]

    def test_missing_optional_file_uses_environment(self, tmp_path: Path) -> None:
        env = {"TRC_AUTH_JWT_SECRET": "x", "TRC_STORAGE_LOCAL_ROOT_DIR": str(tmp_path)}

        config = load_config(tmp_path / "nope.yaml", env, required=False)

        assert isinstance(config.storage, LocalStorageConfig)


class TestSerializeConfig:
    """Tests for serialize_config."""

    def test_serialized_config_uses_camel_case_and_masks_secrets(self) -> None:
        text = """
auth: {sharedSecret: {secret: top-secret}}
storage:
  s3: {bucket: b, region: r, accessKeyId: AKIA, secretAccessKey: hidden}
"""
        output = serialize_config(resolve_config(text, {"CI": "true"}))

        assert "top-secret" not in output
        assert "hidden" not in output
        data = yaml.safe_load(output)
        assert data["auth"]["type"] == "shared-secret"
        assert data["storage"]["s3"]["accessKeyId"] == "AKIA"
        assert data["storage"]["s3"]["forcePathStyle"] is False
        assert data["logging"] == {"level": "info", "pretty": False}
        assert data["server"] == {"host": "0.0.0.0", "port": 3000}


def test_config_error_format() -> None:
    error = ConfigError("Invalid config file", [ConfigIssue("server.port", "too big")])

    assert error.format() == "Invalid config file\n- server.port: too big"

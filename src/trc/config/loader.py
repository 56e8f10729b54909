"""TRC configuration resolution.

Turns raw configuration text plus an environment mapping into a frozen
TrcConfig. Resolution runs in a fixed order:

1. Parse the text as YAML or JSON (extension hint, else leading ``{``/``[``)
2. Replace ``$NAME`` / ``${NAME}`` string values with environment values
3. Apply ``TRC_*`` environment overrides onto fixed config paths
4. Infer ``storage.provider`` / ``auth.type`` from the configured sub-blocks
5. Validate against the schema

Every problem found along the way is collected and raised as a single
ConfigError.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import ValidationError

from trc.config.env import (
    AUTH_SIGNALS,
    CONFIG_ENV,
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    ENV_OVERRIDES,
    STORAGE_SIGNALS,
    default_pretty,
    get_env,
)
from trc.config.errors import ConfigError, ConfigIssue
from trc.config.models import TrcConfig

logger = logging.getLogger(__name__)

ConfigFormat = Literal["yaml", "json"]

_PLACEHOLDER_PATTERN = re.compile(r"^\$(?:\{(?P<braced>[^}]*)\}|(?P<bare>[A-Za-z0-9_]*))$")

# Tagged-union fields: pydantic inserts the tag value into error locations.
_TAGGED_FIELDS = {"auth": "type", "storage": "provider"}
_TAG_ERRORS = frozenset({"union_tag_not_found", "union_tag_invalid"})


def format_from_path(path: str | Path) -> ConfigFormat | None:
    """Return the format implied by a file extension, if any."""
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return None


def detect_format(text: str) -> ConfigFormat:
    """Guess the format of config text from its first non-blank character."""
    stripped = text.lstrip()
    if stripped.startswith(("{", "[")):
        return "json"
    return "yaml"


def parse_config_text(text: str, *, fmt: ConfigFormat | None = None) -> dict[str, Any]:
    """Parse raw config text into a mapping.

    Args:
        text: YAML or JSON document.
        fmt: Explicit format; detected from the text when omitted.

    Returns:
        Parsed mapping. Empty documents yield an empty mapping.

    Raises:
        ConfigError: If the text cannot be parsed or its root is not a mapping.
    """
    fmt = fmt or detect_format(text)

    if fmt == "json":
        try:
            data = json.loads(text) if text.strip() else None
        except json.JSONDecodeError as e:
            raise ConfigError("Invalid JSON in config file", [ConfigIssue("(json)", str(e))]) from e
    else:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError("Invalid YAML in config file", [ConfigIssue("(yaml)", str(e))]) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            "Invalid config file",
            [ConfigIssue("(root)", "Config root must be a mapping")],
        )
    return data


def _join_path(path: tuple[str | int, ...]) -> str:
    return ".".join(str(segment) for segment in path) if path else "(root)"


def interpolate_env(tree: Any, env: Mapping[str, str]) -> tuple[Any, list[ConfigIssue]]:
    """Replace whole-string ``$NAME`` / ``${NAME}`` values with environment values.

    Strings that merely contain a ``$`` are left untouched.

    Returns:
        Tuple of (new tree, issues). Unresolvable placeholders are kept verbatim
        and reported at their dotted path.
    """
    issues: list[ConfigIssue] = []

    def visit(node: Any, path: tuple[str | int, ...]) -> Any:
        if isinstance(node, dict):
            return {key: visit(value, (*path, str(key))) for key, value in node.items()}
        if isinstance(node, list):
            return [visit(value, (*path, index)) for index, value in enumerate(node)]
        if not isinstance(node, str):
            return node

        match = _PLACEHOLDER_PATTERN.fullmatch(node)
        if match is None:
            return node

        braced = match.group("braced")
        name = (braced if braced is not None else match.group("bare")).strip()
        if not name:
            issues.append(ConfigIssue(_join_path(path), "Environment variable name is empty"))
            return node
        if name not in env:
            issues.append(
                ConfigIssue(_join_path(path), f"Environment variable {name} is not defined")
            )
            return node
        return env[name]

    return visit(tree, ()), issues


def _set_path(tree: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = tree
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = value


def apply_env_overrides(tree: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Overlay ``TRC_*`` environment values onto their config paths.

    Values stay strings; the schema coerces numbers and booleans.
    """
    result = copy.deepcopy(tree)
    applied: list[str] = []
    for name, path in ENV_OVERRIDES:
        value = get_env(env, name)
        if value is None:
            continue
        _set_path(result, path, value)
        applied.append(name)

    if applied:
        logger.debug("Applied config overrides from environment: %s", ", ".join(applied))
    return result


def _infer_tag(
    block: Any,
    section: str,
    tag_key: str,
    signals: Mapping[str, str],
) -> ConfigIssue | None:
    if not isinstance(block, dict) or block.get(tag_key) is not None:
        return None

    present = [variant for key, variant in signals.items() if key in block]
    if len(present) == 1:
        block[tag_key] = present[0]
        return None
    if len(present) > 1:
        return ConfigIssue(
            f"{section}.{tag_key}",
            f"Ambiguous {section} configuration ({', '.join(present)}); "
            f"set {section}.{tag_key} explicitly",
        )
    return None


def infer_variants(tree: dict[str, Any]) -> tuple[dict[str, Any], list[ConfigIssue]]:
    """Fill in a missing storage provider or auth type from the configured sub-blocks.

    Returns:
        Tuple of (new tree, issues). Ambiguous configurations are reported and
        left without a discriminator.
    """
    result = copy.deepcopy(tree)
    issues: list[ConfigIssue] = []

    for section, tag_key, signals in (
        ("storage", "provider", STORAGE_SIGNALS),
        ("auth", "type", AUTH_SIGNALS),
    ):
        issue = _infer_tag(result.get(section), section, tag_key, signals)
        if issue is not None:
            issues.append(issue)

    return result, issues


def _apply_logging_defaults(tree: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    logging_block = tree.get("logging")
    if logging_block is None:
        logging_block = {}
        tree["logging"] = logging_block
    if isinstance(logging_block, dict) and logging_block.get("pretty") is None:
        logging_block["pretty"] = default_pretty(env)
    return tree


def _format_validation_errors(error: ValidationError) -> list[ConfigIssue]:
    issues: list[ConfigIssue] = []
    for detail in error.errors():
        loc = list(detail["loc"])
        if loc and loc[0] in _TAGGED_FIELDS:
            if detail["type"] in _TAG_ERRORS and len(loc) == 1:
                loc.append(_TAGGED_FIELDS[loc[0]])
            elif len(loc) > 1:
                del loc[1]
        message = str(detail["msg"]).removeprefix("Value error, ")
        issues.append(ConfigIssue(_join_path(tuple(loc)), message))
    return issues


def validate_config(tree: Mapping[str, Any]) -> TrcConfig:
    """Validate a merged config tree.

    Raises:
        ConfigError: With one issue per schema violation.
    """
    try:
        return TrcConfig.model_validate(tree)
    except ValidationError as e:
        raise ConfigError("Invalid config file", _format_validation_errors(e)) from e


def resolve_config(
    file_contents: str | None,
    env: Mapping[str, str],
    *,
    fmt: ConfigFormat | None = None,
) -> TrcConfig:
    """Resolve config text and environment into a validated TrcConfig.

    Args:
        file_contents: Raw YAML/JSON text, or None for environment-only config.
        env: Environment mapping (normally a copy of ``os.environ``).
        fmt: Explicit text format; detected when omitted.

    Returns:
        Frozen TrcConfig.

    Raises:
        ConfigError: With every issue found across all resolution steps.
    """
    tree = parse_config_text(file_contents, fmt=fmt) if file_contents is not None else {}

    tree, issues = interpolate_env(tree, env)
    tree = apply_env_overrides(tree, env)
    tree, inference_issues = infer_variants(tree)
    issues.extend(inference_issues)
    tree = _apply_logging_defaults(tree, env)

    config: TrcConfig | None = None
    try:
        config = validate_config(tree)
    except ConfigError as e:
        reported = {issue.path for issue in issues}
        issues.extend(issue for issue in e.issues if issue.path not in reported)

    if issues or config is None:
        raise ConfigError("Invalid config file", issues)
    return config


def load_config(
    path: str | Path,
    env: Mapping[str, str],
    *,
    required: bool = True,
) -> TrcConfig:
    """Load and resolve a config file.

    Args:
        path: Config file path.
        env: Environment mapping.
        required: When False, a missing file falls back to environment-only config.

    Raises:
        ConfigError: If the file cannot be read or the config is invalid.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        if not required:
            logger.debug("Config file %s not found; using environment only", path)
            return resolve_config(None, env)
        raise ConfigError(
            f"Unable to read config file: {path}", [ConfigIssue("(file)", str(e))]
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Unable to read config file: {path}", [ConfigIssue("(file)", str(e))]
        ) from e

    return resolve_config(text, env, fmt=format_from_path(path))


@dataclass(frozen=True)
class ResolvedConfigInput:
    """Where configuration text comes from.

    Attributes:
        kind: "raw" for inline text, "path" for a file.
        value: The inline text or the file path.
        explicit: False only for the implicit default path.
    """

    kind: Literal["raw", "path"]
    value: str
    explicit: bool = True


@dataclass(frozen=True)
class ResolvedConfig:
    """Selected config input plus warnings about ignored sources."""

    input: ResolvedConfigInput
    warnings: list[str] = field(default_factory=list)


def resolve_config_input(config_option: str | None, env: Mapping[str, str]) -> ResolvedConfig:
    """Choose the config source: TRC_CONFIG, then TRC_CONFIG_PATH, then --config, then default.

    Args:
        config_option: Value of the ``--config`` command line option.
        env: Environment mapping.

    Returns:
        ResolvedConfig with the selected input and a warning per ignored source.
    """
    warnings: list[str] = []
    env_config = get_env(env, CONFIG_ENV)
    env_config_path = get_env(env, CONFIG_PATH_ENV)

    if env_config is not None:
        if env_config_path is not None:
            warnings.append(f"Warning: {CONFIG_ENV} is set; ignoring {CONFIG_PATH_ENV}")
        if config_option:
            warnings.append(f"Warning: {CONFIG_ENV} is set; ignoring --config")
        return ResolvedConfig(ResolvedConfigInput("raw", env_config), warnings)

    if env_config_path is not None:
        if config_option:
            warnings.append(f"Warning: {CONFIG_PATH_ENV} is set; ignoring --config")
        return ResolvedConfig(ResolvedConfigInput("path", env_config_path), warnings)

    if config_option:
        return ResolvedConfig(ResolvedConfigInput("path", config_option), warnings)

    return ResolvedConfig(ResolvedConfigInput("path", DEFAULT_CONFIG_PATH, explicit=False), warnings)


def load_resolved_config(resolved: ResolvedConfigInput, env: Mapping[str, str]) -> TrcConfig:
    """Load config from a selected input."""
    if resolved.kind == "raw":
        return resolve_config(resolved.value, env)
    return load_config(resolved.value, env, required=resolved.explicit)


def serialize_config(config: TrcConfig) -> str:
    """Render config as YAML with camelCase keys and secrets masked."""
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)

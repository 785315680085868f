"""
Configuration loading for the toolkit.

Sources are merged from lowest to highest priority:
1. Built-in defaults
2. Config file (JSON or YAML)
3. Environment variables (a local .env file is loaded first when present)
4. Runtime options passed to AIToolkit(...)

Nested mappings (engines, models, api_bases) are merged key by key; every
other key is replaced by the higher-priority source.

Environment configuration:
- OPENAI_API_KEY / ANTHROPIC_API_KEY: engine API keys
- OPENAI_API_BASE / ANTHROPIC_API_BASE: override provider base URLs
- AI_TOOLKIT_TOKEN / AI_TOOLKIT_KEY: toolkit token (cloud mode)
- AI_DEFAULT_ENGINE: openai | anthropic
- AI_MODEL_OPENAI / AI_MODEL_ANTHROPIC: model names
- AI_REQUEST_TIMEOUT_SECONDS: provider request timeout
- AI_TELEMETRY=false, AI_VALIDATE_OUTPUTS=true, AI_DEBUG=true
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from aitoolkit.core.errors import ConfigurationError
from aitoolkit.core.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_ENGINES = ("openai", "anthropic")

DEFAULT_API_BASES = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com/v1",
}

DEFAULT_MODELS = {
    "openai": "gpt-4",
    "anthropic": "claude-3-sonnet-20240229",
}

NESTED_KEYS = ("engines", "models", "api_bases")

# camelCase option names accepted for compatibility with existing config files
OPTION_ALIASES = {
    "defaultEngine": "default_engine",
    "apiBases": "api_bases",
    "maxTokens": "max_tokens",
    "timeoutSeconds": "timeout_seconds",
    "basePrompt": "base_prompt",
    "telemetryKey": "telemetry_key",
    "telemetryEndpoint": "telemetry_endpoint",
    "validateOutputs": "validate_outputs",
    "withExecutor": "with_executor",
    "cloudMode": "cloud_mode",
    "configFile": "config_file",
}


def default_search_paths() -> List[Path]:
    return [
        Path("ai-toolkit.config.json"),
        Path("ai-toolkit.config.yaml"),
        Path("ai-toolkit.config.yml"),
        Path(".ai-toolkit.rc"),
        Path.home() / ".ai-toolkit" / "config.json",
    ]


class ToolkitConfig(BaseModel):
    """
    Resolved toolkit configuration.

    API keys and tokens are stored as SecretStr; use get_api_key() and
    model_dump_safe() rather than reading them directly.
    """

    model_config = ConfigDict(extra="ignore")

    default_engine: str = "openai"
    engines: Dict[str, SecretStr] = Field(default_factory=dict)
    models: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_MODELS))
    api_bases: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_API_BASES))
    temperature: float = Field(0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(1000, ge=1)
    timeout_seconds: float = Field(30.0, gt=0.0)
    base_prompt: Optional[str] = None
    preset: Optional[str] = None

    token: Optional[SecretStr] = None
    telemetry_key: Optional[SecretStr] = None
    telemetry_endpoint: Optional[str] = None
    telemetry: bool = True

    validate_outputs: bool = False
    with_executor: bool = False
    logging: bool = False
    audit: bool = False
    debug: bool = False
    cloud_mode: bool = False

    def get_api_key(self, engine: str) -> Optional[str]:
        secret = self.engines.get(engine)
        if secret is None:
            return None
        value = secret.get_secret_value()
        return value or None

    def has_engine(self, engine: str) -> bool:
        return self.get_api_key(engine) is not None

    def get_model(self, engine: str) -> str:
        return self.models.get(engine) or DEFAULT_MODELS.get(engine, "")

    def get_api_base(self, engine: str) -> str:
        return (self.api_bases.get(engine) or DEFAULT_API_BASES.get(engine, "")).rstrip("/")

    def model_dump_safe(self) -> Dict[str, Any]:
        """Export configuration without secrets."""
        data = self.model_dump(exclude={"engines", "token", "telemetry_key"})
        data["configured_engines"] = sorted(e for e in self.engines if self.has_engine(e))
        data["has_token"] = self.token is not None or self.telemetry_key is not None
        return data

    def to_options(self) -> Dict[str, Any]:
        """
        Plain option mapping (secrets revealed) suitable for building a new
        configuration with ToolkitConfig.model_validate().
        """
        data = self.model_dump(exclude={"engines", "token", "telemetry_key"})
        data["engines"] = {name: secret.get_secret_value() for name, secret in self.engines.items()}
        if self.token is not None:
            data["token"] = self.token.get_secret_value()
        if self.telemetry_key is not None:
            data["telemetry_key"] = self.telemetry_key.get_secret_value()
        return data


def normalize_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Translate camelCase aliases and drop keys whose value is None."""
    normalized: Dict[str, Any] = {}
    for key, value in (options or {}).items():
        if value is None:
            continue
        normalized[OPTION_ALIASES.get(key, key)] = value
    return normalized


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key in NESTED_KEYS and isinstance(value, Mapping):
            nested = dict(merged.get(key) or {})
            nested.update(value)
            merged[key] = nested
        else:
            merged[key] = value
    return merged


def _env_flag(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value.strip().lower() if value is not None else None


class ConfigLoader:
    """
    Resolve a ToolkitConfig from defaults, file, environment and runtime options.
    """

    def __init__(self, load_env_file: bool = True, search_paths: Optional[List[Path]] = None):
        self.load_env_file = load_env_file
        self.search_paths = search_paths

    def load(self, options: Optional[Mapping[str, Any]] = None) -> ToolkitConfig:
        """
        Build the configuration.

        Raises:
            ConfigurationError if the merged values fail validation.
        """
        runtime = normalize_options(options)

        config = self.get_defaults()

        file_config = self.load_from_file(runtime.pop("config_file", None))
        if file_config:
            config = merge_config(config, normalize_options(file_config))

        config = merge_config(config, self.load_from_env())
        config = merge_config(config, runtime)

        try:
            resolved = ToolkitConfig.model_validate(config)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid toolkit configuration: {exc}",
                details={"errors": exc.errors(include_url=False)},
            ) from exc

        return self.process_config(resolved)

    def get_defaults(self) -> Dict[str, Any]:
        return {
            "default_engine": "openai",
            "engines": {},
            "models": dict(DEFAULT_MODELS),
            "api_bases": dict(DEFAULT_API_BASES),
            "temperature": 0.3,
            "max_tokens": 1000,
            "timeout_seconds": 30.0,
            "telemetry": True,
            "validate_outputs": False,
            "with_executor": False,
            "logging": False,
            "audit": False,
            "debug": False,
        }

    def load_from_file(self, config_file: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Load the first config file found.

        An explicit config_file is the only candidate when given. Files that
        cannot be read or parsed are logged and skipped.
        """
        if config_file:
            candidates = [Path(config_file)]
        else:
            candidates = self.search_paths if self.search_paths is not None else default_search_paths()

        for path in candidates:
            try:
                if not path.exists():
                    continue
                content = path.read_text(encoding="utf-8")
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(content)
                else:
                    data = json.loads(content)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                logger.warning("config_file_load_failed", path=str(path), error=str(exc))
                continue

            if not isinstance(data, dict):
                logger.warning("config_file_not_a_mapping", path=str(path))
                continue

            logger.debug("config_file_loaded", path=str(path))
            return data

        return None

    def load_from_env(self) -> Dict[str, Any]:
        if self.load_env_file:
            env_path = find_dotenv(usecwd=True)
            if env_path:
                load_dotenv(env_path, override=False)

        config: Dict[str, Any] = {}

        for engine, var in (("openai", "OPENAI_API_KEY"), ("anthropic", "ANTHROPIC_API_KEY")):
            value = os.getenv(var)
            if value:
                config.setdefault("engines", {})[engine] = value

        for engine, var in (("openai", "OPENAI_API_BASE"), ("anthropic", "ANTHROPIC_API_BASE")):
            value = os.getenv(var)
            if value:
                config.setdefault("api_bases", {})[engine] = value

        for engine, var in (("openai", "AI_MODEL_OPENAI"), ("anthropic", "AI_MODEL_ANTHROPIC")):
            value = os.getenv(var)
            if value:
                config.setdefault("models", {})[engine] = value

        if os.getenv("AI_TOOLKIT_TOKEN"):
            config["token"] = os.getenv("AI_TOOLKIT_TOKEN")

        if os.getenv("AI_TOOLKIT_KEY"):
            config["telemetry_key"] = os.getenv("AI_TOOLKIT_KEY")

        if os.getenv("AI_DEFAULT_ENGINE"):
            config["default_engine"] = os.getenv("AI_DEFAULT_ENGINE")

        timeout = os.getenv("AI_REQUEST_TIMEOUT_SECONDS")
        if timeout:
            try:
                config["timeout_seconds"] = float(timeout)
            except ValueError:
                logger.warning("config_env_invalid_timeout", value=timeout)

        if _env_flag("AI_TELEMETRY") == "false":
            config["telemetry"] = False

        if _env_flag("AI_VALIDATE_OUTPUTS") == "true":
            config["validate_outputs"] = True

        if _env_flag("AI_DEBUG") == "true":
            config["debug"] = True

        return config

    def process_config(self, config: ToolkitConfig) -> ToolkitConfig:
        has_engine_key = any(config.has_engine(engine) for engine in SUPPORTED_ENGINES)

        if config.token is not None and not has_engine_key:
            config.cloud_mode = True

        if config.token is None and not has_engine_key:
            logger.warning(
                "no_engines_configured",
                hint=(
                    "Set OPENAI_API_KEY or ANTHROPIC_API_KEY, set AI_TOOLKIT_TOKEN, "
                    "or pass engines={'openai': 'sk-...'} to AIToolkit()."
                ),
            )

        return config


def load_config(options: Optional[Mapping[str, Any]] = None, **kwargs) -> ToolkitConfig:
    """Shortcut for ConfigLoader(**kwargs).load(options)."""
    return ConfigLoader(**kwargs).load(options)

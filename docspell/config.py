"""
DocSpell Configuration Module
=============================
Centralized configuration for the checker pipeline and its backends.

Configuration can be set via:
1. Config file (docspell.json in the working directory, or --cfg)
2. Environment variables (DOCSPELL_BACKENDS=symspell,languagetool)
3. Direct API calls (config.set('symspell.max_edit_distance', 1))

All settings have defaults that work offline with the symspell backend.
"""

import os
import json
import copy
import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, asdict, fields

from .config_logging import ConfigurationError, get_logger

__version__ = "1.0.0"

logger = get_logger('config')

# Default configuration file, looked up in the working directory
CONFIG_FILE_NAME = "docspell.json"

KNOWN_BACKENDS = ("symspell", "hunspell", "languagetool")


@dataclass
class SymSpellConfig:
    """SymSpell dictionary backend configuration."""
    max_edit_distance: int = 2
    prefix_length: int = 7
    custom_dictionary: Optional[str] = None
    load_default_dictionary: bool = True


@dataclass
class HunspellConfig:
    """Hunspell (pyenchant) dictionary backend configuration."""
    language: str = "en_US"
    search_dirs: list = field(default_factory=list)
    extra_dictionaries: list = field(default_factory=list)  # paths of .dic files
    personal_dictionary: Optional[str] = None


@dataclass
class LanguageToolConfig:
    """LanguageTool configuration."""
    language: str = "en-US"
    remote_server: Optional[str] = None
    public_api: bool = False
    disabled_rules: list = field(default_factory=lambda: [
        "WHITESPACE_RULE",    # Too noisy on reflowed comments
        "COMMA_PARENTHESIS_WHITESPACE",
        "UPPERCASE_SENTENCE_START",
    ])
    max_concurrent_requests: int = 4


@dataclass
class TokenizerConfig:
    """Word and sentence tokenizer configuration."""
    split_identifiers: bool = False
    min_word_length: int = 2


@dataclass
class QuirksConfig:
    """Word transformations applied before a dictionary lookup."""
    # A match without groups accepts the word; groups are checked instead of it
    transform_regex: list = field(default_factory=lambda: [
        r"^'([^\s]+)'$",
        r"^[0-9]+(?:\.[0-9]+)?x$",
    ])
    allow_dashes: bool = True


@dataclass
class PathOverride:
    """Backend selection and extra ignore words for paths matching a glob."""
    pattern: str
    enabled_backends: Optional[list] = None
    ignore_words: list = field(default_factory=list)


@dataclass
class CheckerConfig:
    """Master DocSpell configuration."""
    enabled_backends: list = field(default_factory=lambda: ["symspell"])
    symspell: SymSpellConfig = field(default_factory=SymSpellConfig)
    hunspell: HunspellConfig = field(default_factory=HunspellConfig)
    languagetool: LanguageToolConfig = field(default_factory=LanguageToolConfig)
    tokenizer: TokenizerConfig = field(default_factory=TokenizerConfig)
    quirks: QuirksConfig = field(default_factory=QuirksConfig)
    ignore_words: list = field(default_factory=list)
    suggestion_limit: int = 3
    auto_accept_threshold: float = 0.9
    findings_exit_code: int = 1
    jobs: Optional[int] = None
    path_overrides: List[PathOverride] = field(default_factory=list)

    def priority(self, backend: str) -> int:
        """Rank of a backend; lower is more important."""
        try:
            return self.enabled_backends.index(backend)
        except ValueError:
            return len(self.enabled_backends)

    def for_path(self, path) -> 'CheckerConfig':
        """
        Resolve the configuration for one file.

        Every override whose pattern matches the path applies in order:
        ``enabled_backends`` replaces the list, ``ignore_words`` extends it.
        """
        matching = [o for o in self.path_overrides
                    if fnmatch.fnmatch(Path(path).as_posix(), o.pattern)]
        if not matching:
            return self
        resolved = copy.deepcopy(self)
        for override in matching:
            if override.enabled_backends is not None:
                resolved.enabled_backends = [b for b in override.enabled_backends
                                             if b in self.enabled_backends]
            resolved.ignore_words = resolved.ignore_words + list(override.ignore_words)
        resolved.path_overrides = []
        return resolved

    def with_backends(self, backends: List[str]) -> 'CheckerConfig':
        """Copy restricted to the given backends, keeping configured priority."""
        resolved = copy.deepcopy(self)
        resolved.enabled_backends = [b for b in self.enabled_backends if b in backends]
        return resolved

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance
_config: Optional[CheckerConfig] = None


def get_config(path: Optional[Path] = None) -> CheckerConfig:
    """Get the global configuration, loading it on first use."""
    global _config
    if _config is None or path is not None:
        _config = load_config(path)
    return _config


def load_config(path: Optional[Path] = None) -> CheckerConfig:
    """
    Load configuration from file and environment.

    Args:
        path: Explicit config file. A missing or invalid explicit file raises
              ConfigurationError; a broken default file only logs a warning.

    Returns:
        Validated CheckerConfig
    """
    config = CheckerConfig()

    if path is not None:
        data = _read_config_file(Path(path))
        _apply_dict_to_config(config, data, str(path))
    else:
        default_path = Path.cwd() / CONFIG_FILE_NAME
        if default_path.exists():
            try:
                _apply_dict_to_config(config, _read_config_file(default_path), str(default_path))
            except ConfigurationError as e:
                logger.warning(f"Could not load config file: {e.message}", path=str(default_path))
                config = CheckerConfig()

    # Override with environment variables
    _apply_env_to_config(config)
    validate_config(config)
    return config


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}", path=str(path)) from e
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}", path=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object", path=str(path))
    return data


def _apply_section(section, data: Dict[str, Any], source: str, name: str):
    known = {f.name for f in fields(section)}
    for key, value in data.items():
        if key in known:
            setattr(section, key, value)
        else:
            logger.warning(f"Unknown config key: {name}.{key}", path=source)


def _apply_dict_to_config(config: CheckerConfig, data: Dict[str, Any], source: str = ""):
    """Apply dictionary values to config object."""
    for key, value in data.items():
        if key == 'path_overrides':
            if not isinstance(value, list):
                raise ConfigurationError("path_overrides must be a list", path=source)
            overrides = []
            for entry in value:
                if not isinstance(entry, dict) or 'pattern' not in entry:
                    raise ConfigurationError(
                        "Each path override needs a 'pattern'", path=source, entry=entry)
                try:
                    overrides.append(PathOverride(**entry))
                except TypeError as e:
                    raise ConfigurationError(f"Invalid path override: {e}", path=source) from e
            config.path_overrides = overrides
        elif not hasattr(config, key):
            logger.warning(f"Unknown config key: {key}", path=source)
        elif isinstance(value, dict):
            section = getattr(config, key)
            if not hasattr(section, '__dataclass_fields__'):
                raise ConfigurationError(f"Config key {key} is not a section", path=source)
            _apply_section(section, value, source, key)
        else:
            setattr(config, key, value)


def _apply_env_to_config(config: CheckerConfig):
    """Apply environment variables to config."""
    env_mappings = {
        'DOCSPELL_BACKENDS': (None, 'enabled_backends', _parse_list),
        'DOCSPELL_IGNORE_WORDS': (None, 'ignore_words', _parse_list),
        'DOCSPELL_SUGGESTION_LIMIT': (None, 'suggestion_limit', int),
        'DOCSPELL_AUTO_ACCEPT_THRESHOLD': (None, 'auto_accept_threshold', float),
        'DOCSPELL_JOBS': (None, 'jobs', int),
        'DOCSPELL_SYMSPELL_MAX_EDIT_DISTANCE': ('symspell', 'max_edit_distance', int),
        'DOCSPELL_SYMSPELL_DICTIONARY': ('symspell', 'custom_dictionary', str),
        'DOCSPELL_HUNSPELL_LANGUAGE': ('hunspell', 'language', str),
        'DOCSPELL_LANGUAGETOOL_LANGUAGE': ('languagetool', 'language', str),
        'DOCSPELL_LANGUAGETOOL_SERVER': ('languagetool', 'remote_server', str),
        'DOCSPELL_LANGUAGETOOL_PUBLIC_API': ('languagetool', 'public_api', _parse_bool),
        'DOCSPELL_SPLIT_IDENTIFIERS': ('tokenizer', 'split_identifiers', _parse_bool),
    }

    for env_var, (section, key, converter) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            try:
                target = getattr(config, section) if section else config
                setattr(target, key, converter(value))
            except ValueError as e:
                logger.warning(f"Invalid env var {env_var}={value}: {e}")


def _parse_bool(value: str) -> bool:
    """Parse boolean from string."""
    return value.lower() in ('true', '1', 'yes', 'on')


def _parse_list(value: str) -> list:
    return [item.strip() for item in value.split(',') if item.strip()]


def validate_config(config: CheckerConfig):
    """Raise ConfigurationError for values the pipeline cannot run with."""
    unknown = [b for b in config.enabled_backends if b not in KNOWN_BACKENDS]
    if unknown:
        raise ConfigurationError(
            f"Unknown backend(s): {', '.join(unknown)}",
            known=list(KNOWN_BACKENDS),
        )
    if len(dict.fromkeys(config.enabled_backends)) != len(config.enabled_backends):
        raise ConfigurationError("enabled_backends lists a backend twice")
    if not isinstance(config.suggestion_limit, int) or config.suggestion_limit < 1:
        raise ConfigurationError("suggestion_limit must be a positive integer")
    if not 0.0 <= float(config.auto_accept_threshold) <= 1.0:
        raise ConfigurationError("auto_accept_threshold must be between 0 and 1")
    if not 0 <= config.symspell.max_edit_distance <= 3:
        raise ConfigurationError("symspell.max_edit_distance must be between 0 and 3")
    if config.languagetool.max_concurrent_requests < 1:
        raise ConfigurationError("languagetool.max_concurrent_requests must be at least 1")
    if config.jobs is not None and config.jobs < 1:
        raise ConfigurationError("jobs must be at least 1")


def get(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dot-notation key.

    Example: get('symspell.max_edit_distance') -> 2
    """
    obj = get_config()
    for part in key.split('.'):
        if hasattr(obj, part):
            obj = getattr(obj, part)
        else:
            return default
    return obj


def set(key: str, value: Any):
    """
    Set a configuration value by dot-notation key.

    Example: set('tokenizer.split_identifiers', True)
    """
    config = get_config()
    parts = key.split('.')
    target = config
    for part in parts[:-1]:
        if not hasattr(target, part):
            raise ValueError(f"Unknown config section: {part}")
        target = getattr(target, part)
    if not hasattr(target, parts[-1]):
        raise ValueError(f"Unknown config key: {key}")
    setattr(target, parts[-1], value)


def default_config_json() -> str:
    """The default configuration rendered as JSON."""
    return json.dumps(CheckerConfig().to_dict(), indent=2) + "\n"


def save_config(path: Path, config: Optional[CheckerConfig] = None, force: bool = False):
    """
    Save a configuration (default: the built-in defaults) to a file.

    Raises:
        ConfigurationError: If the file exists and ``force`` is not set
    """
    path = Path(path)
    if path.exists() and not force:
        raise ConfigurationError(f"{path} already exists, use --force to overwrite", path=str(path))
    data = (config or CheckerConfig()).to_dict()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
        f.write("\n")


def reset_config():
    """Reset configuration to defaults."""
    global _config
    _config = CheckerConfig()

"""
Generator configuration.

Defaults can be overridden through ``EXTBUILDER_*`` environment variables.
"""

import os
import logging
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass
class GeneratorConfig:
    """Settings shared by every generator in one generation pass."""
    indent_size: int = 4
    max_depth: int = 200  # nesting guard for value/statement sockets
    max_chain_length: int = 5000  # guard for `next` chains
    default_package: str = "com.example"
    default_class_name: str = "MyExtension"
    default_description: str = "An App Inventor 2 extension"
    log_tag: str = "AI2"
    prefs_name: str = "AI2_Extension_Prefs"
    missing_root_message: str = "// Add an 'AI2 Extension' block to begin"

    @classmethod
    def from_env(cls) -> 'GeneratorConfig':
        """Build a config from defaults plus environment overrides."""
        config = cls()
        config.indent_size = _env_int('EXTBUILDER_INDENT_SIZE', config.indent_size)
        config.max_depth = _env_int('EXTBUILDER_MAX_DEPTH', config.max_depth)
        config.max_chain_length = _env_int('EXTBUILDER_MAX_CHAIN_LENGTH', config.max_chain_length)
        package = os.environ.get('EXTBUILDER_DEFAULT_PACKAGE', '').strip()
        if package:
            config.default_package = package
        return config


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return default
    if value < 1:
        logger.warning(f"Ignoring non-positive {name}={raw!r}")
        return default
    return value

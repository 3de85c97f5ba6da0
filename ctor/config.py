"""Configuration for the construction engine.

Two knobs, both about how strictly the engine treats out-of-contract usage:

- field_collisions: what happens when two levels of a chain assign the same
  field ("overwrite", "warn" or "error")
- strict_extension: whether reusing a from_() handle raises

Resolution order (highest priority first):
1. Programmatic (configure(CtorConfig(...)))
2. Environment variables (CTOR_FIELD_COLLISIONS, CTOR_STRICT_EXTENSION)
3. Hardcoded defaults
"""

import logging
import os
from dataclasses import dataclass


logger = logging.getLogger(__name__)

COLLISION_POLICIES = ("overwrite", "warn", "error")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class CtorConfig:
    """Engine configuration.

    Examples:
        configure(CtorConfig(field_collisions="error"))
        config = CtorConfig.load()  # defaults + env vars
    """

    field_collisions: str = "overwrite"
    strict_extension: bool = False

    def __post_init__(self):
        if self.field_collisions not in COLLISION_POLICIES:
            raise ValueError(
                f"Invalid field_collisions: {self.field_collisions!r}. "
                f"Expected one of {', '.join(COLLISION_POLICIES)}"
            )

    @classmethod
    def load(cls) -> "CtorConfig":
        """Build a config from defaults overridden by environment variables."""
        config = cls()
        if val := os.environ.get("CTOR_FIELD_COLLISIONS"):
            val = val.strip().lower()
            if val in COLLISION_POLICIES:
                config.field_collisions = val
            else:
                logger.warning("Invalid CTOR_FIELD_COLLISIONS=%r, ignoring", val)
        if (val := os.environ.get("CTOR_STRICT_EXTENSION")) is not None:
            flag = val.strip().lower()
            if flag in _TRUE:
                config.strict_extension = True
            elif flag in _FALSE:
                config.strict_extension = False
            else:
                logger.warning("Invalid CTOR_STRICT_EXTENSION=%r, ignoring", val)
        return config


# =============================================================================
# Global config singleton
# =============================================================================

_config: CtorConfig | None = None


def get_config() -> CtorConfig:
    """Get the global CtorConfig, loading it from the environment on first use."""
    global _config
    if _config is None:
        _config = CtorConfig.load()
    return _config


def configure(config: CtorConfig) -> None:
    """Set the global CtorConfig programmatically."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global config (forces reload on next get_config())."""
    global _config
    _config = None

"""DPU CNI agent runtime helpers."""

from .config import AgentConfig, AgentSettings, load_config  # noqa: F401

__all__ = [
    "AgentConfig",
    "AgentSettings",
    "load_config",
]

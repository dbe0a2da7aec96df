"""
FlexResearch Configuration.

Single source for runtime tuning:
- Admission window (requests per trailing window, boundary buffer)
- Batch execution (default mode, concurrency cap, inter-slice pause)
- Completion backend (provider string, rate-limit backoff, HTTP timeout)
- Model parameters per call purpose

Loads from flexresearch_config.yaml (or the path in FLEXRESEARCH_CONFIG) if
present, otherwise uses defaults. FLEXRESEARCH_BACKEND overrides the backend.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml

from ..utils import console


DEFAULT_CONFIG_FILENAME = "flexresearch_config.yaml"


@dataclass
class AdmissionSettings:
    """Sliding-window admission limits."""
    max_requests: int = 10
    window_seconds: float = 60.0
    buffer_seconds: float = 0.1


@dataclass
class BatchSettings:
    """Batch execution defaults."""
    mode: str = "concurrent"
    max_concurrent: int = 3
    inter_slice_pause: float = 2.0


@dataclass
class CompletionSettings:
    """Completion backend selection and call policy."""
    backend: str = "anthropic:claude-sonnet-4-5"
    rate_limit_backoff: float = 5.0
    timeout_seconds: float = 180.0


@dataclass
class PurposeParameters:
    """Sampling parameters for one kind of completion call."""
    temperature: float
    max_tokens: int


DEFAULT_PURPOSES: Dict[str, PurposeParameters] = {
    "clarify": PurposeParameters(temperature=0.7, max_tokens=1000),
    "converse": PurposeParameters(temperature=0.6, max_tokens=1500),
    "extract": PurposeParameters(temperature=0.0, max_tokens=1000),
    "plan": PurposeParameters(temperature=0.3, max_tokens=2000),
    "research": PurposeParameters(temperature=0.7, max_tokens=4000),
    "structure": PurposeParameters(temperature=0.0, max_tokens=2000),
    "synthesis": PurposeParameters(temperature=0.5, max_tokens=4000),
    "summary": PurposeParameters(temperature=0.4, max_tokens=1000),
    "review": PurposeParameters(temperature=0.3, max_tokens=3000),
    "suggest": PurposeParameters(temperature=0.5, max_tokens=1000),
    "custom_output": PurposeParameters(temperature=0.3, max_tokens=3000),
}


class Settings:
    """
    Unified runtime settings for FlexResearch.

    Sections are plain dataclasses; unknown YAML keys are ignored.
    """

    def __init__(self, config_path: Optional[Path] = None):
        if config_path is None:
            env_path = os.getenv("FLEXRESEARCH_CONFIG")
            config_path = Path(env_path) if env_path else Path.cwd() / DEFAULT_CONFIG_FILENAME
        self.config_path = Path(config_path)

        if self.config_path.exists():
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
            console.info(f"Loaded config from {self.config_path}")
        else:
            data = {}
            console.debug(f"No config file at {self.config_path}, using defaults")

        self.admission = self._parse_admission(data.get("admission", {}))
        self.batch = self._parse_batch(data.get("batch", {}))
        self.completion = self._parse_completion(data.get("completion", {}))
        self.purposes = self._parse_purposes(data.get("model_parameters", {}))

        self._raw_config = data

    def _parse_admission(self, data: dict) -> AdmissionSettings:
        return AdmissionSettings(
            max_requests=int(data.get("max_requests", 10)),
            window_seconds=float(data.get("window_seconds", 60.0)),
            buffer_seconds=float(data.get("buffer_seconds", 0.1)),
        )

    def _parse_batch(self, data: dict) -> BatchSettings:
        return BatchSettings(
            mode=str(data.get("mode", "concurrent")),
            max_concurrent=int(data.get("max_concurrent", 3)),
            inter_slice_pause=float(data.get("inter_slice_pause", 2.0)),
        )

    def _parse_completion(self, data: dict) -> CompletionSettings:
        return CompletionSettings(
            backend=os.getenv("FLEXRESEARCH_BACKEND", data.get("backend", "anthropic:claude-sonnet-4-5")),
            rate_limit_backoff=float(data.get("rate_limit_backoff", 5.0)),
            timeout_seconds=float(data.get("timeout_seconds", 180.0)),
        )

    def _parse_purposes(self, data: dict) -> Dict[str, PurposeParameters]:
        """Merge per-purpose overrides onto the defaults."""
        purposes = {}
        for name, default in DEFAULT_PURPOSES.items():
            override = data.get(name, {})
            purposes[name] = PurposeParameters(
                temperature=float(override.get("temperature", default.temperature)),
                max_tokens=int(override.get("max_tokens", default.max_tokens)),
            )
        return purposes

    def purpose(self, name: str) -> PurposeParameters:
        """Sampling parameters for a call purpose (KeyError if unknown)."""
        return self.purposes[name]

    def get_raw_config(self) -> dict[str, Any]:
        return dict(self._raw_config)


class SettingsLoader:
    """
    Process-wide Settings holder.

    Singleton pattern - call get_settings() for shared access.
    """

    _instance: Optional[Settings] = None

    @classmethod
    def get_instance(cls, config_path: Optional[Path] = None) -> Settings:
        if cls._instance is None:
            cls._instance = Settings(config_path)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset singleton (for testing)."""
        cls._instance = None


def get_settings(config_path: Optional[Path] = None) -> Settings:
    """Get the shared Settings instance."""
    return SettingsLoader.get_instance(config_path)

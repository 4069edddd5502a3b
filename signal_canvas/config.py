"""
Configuration management for Signal Canvas.

Settings live in ~/.signal-canvas/config.json (or the path named by
SIGNAL_CANVAS_CONFIG). Missing files and unknown keys fall back to the
defaults below.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".signal-canvas" / "config.json"


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


def default_config_path() -> Path:
    """Config path, honouring the SIGNAL_CANVAS_CONFIG override."""
    env_value = os.getenv("SIGNAL_CANVAS_CONFIG")
    if env_value:
        return Path(env_value).expanduser()
    return CONFIG_PATH


@dataclass
class ModelConfig:
    """Which model handles each request kind."""

    artifact_model: str = "sonnet"
    label_model: str = "haiku"
    mutation_model: str = "sonnet"
    suggestion_model: str = "haiku"

    # 0.0-0.3 = deterministic, 0.4-0.7 = balanced, 0.8+ = creative.
    # Mutations want divergent output; providers clamp to their own range.
    mutation_temperature: float = 1.2
    max_tokens: int = 8192

    def override_all(self, model: str) -> None:
        """Route every request kind to one model."""
        self.artifact_model = model
        self.label_model = model
        self.mutation_model = model
        self.suggestion_model = model


@dataclass
class GenerationConfig:
    """Shape of each submission and mutation."""

    artifact_count: int = 3
    placeholder_label: str = "Accessing Archives..."
    fallback_labels: list[str] = field(
        default_factory=lambda: ["Holographic Overlay", "Neural Matrix", "Crystal Logic"]
    )
    mutation_personas: list[str] = field(
        default_factory=lambda: ["Orbital Command", "Quantum Relay", "Deep Core Archive"]
    )


@dataclass
class CanvasConfig:
    """Complete Signal Canvas configuration."""

    models: ModelConfig = field(default_factory=ModelConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "CanvasConfig":
        """Load configuration from file, applying environment overrides."""
        if path is None:
            path = default_config_path()

        data: dict[str, Any] = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as e:
                # Use defaults on error
                logger.warning(f"Ignoring unreadable config {path}: {e}")

        config = cls(
            models=ModelConfig(**_filter_dataclass_fields(data.get("models", {}), ModelConfig)),
            generation=GenerationConfig(
                **_filter_dataclass_fields(data.get("generation", {}), GenerationConfig)
            ),
        )

        env_model = os.getenv("SIGNAL_CANVAS_MODEL")
        if env_model:
            config.models.override_all(env_model)

        return config

    def save(self, path: Path | None = None) -> Path:
        """Save configuration to file."""
        if path is None:
            path = default_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "models": asdict(self.models),
                    "generation": asdict(self.generation),
                },
                f,
                indent=2,
            )

        return path


# Default configuration instance
default_config = CanvasConfig()

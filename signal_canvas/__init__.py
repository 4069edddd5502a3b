"""Signal Canvas: one prompt, several live-streamed generative HUD components.

Architecture:
- Generation: multi-provider model client + single-shot / streaming tasks
- State: SessionStore, the single owner of sessions and artifacts
- Orchestration: fan-out per submission, mutation variants parsed
  incrementally from the token stream
"""

__version__ = "0.1.0"

# Generation Layer
from .api_client import GenerationFailure, MissingCredential, MultiProviderClient
from .generation import GenerationRequest, GenerationTask
from .json_stream import IncrementalJSONExtractor, extract_json_array, iter_json_objects, strip_code_fences

# State Layer
from .models import (
    ArtifactSnapshot,
    ArtifactStatus,
    SessionSnapshot,
    SubmissionPhase,
    Variant,
)
from .session_store import SessionStore

# Orchestration
from .orchestrator import CanvasOrchestrator, LabelFetchFailure
from .suggestions import PromptSuggestions
from .export import to_html_document, to_react_component

# Config
from .config import CanvasConfig, default_config

__all__ = [
    # Generation
    "GenerationFailure",
    "MissingCredential",
    "MultiProviderClient",
    "GenerationRequest",
    "GenerationTask",
    "IncrementalJSONExtractor",
    "extract_json_array",
    "iter_json_objects",
    "strip_code_fences",
    # State
    "ArtifactSnapshot",
    "ArtifactStatus",
    "SessionSnapshot",
    "SubmissionPhase",
    "Variant",
    "SessionStore",
    # Orchestration
    "CanvasOrchestrator",
    "LabelFetchFailure",
    "PromptSuggestions",
    "to_html_document",
    "to_react_component",
    # Config
    "CanvasConfig",
    "default_config",
]

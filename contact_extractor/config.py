import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Vision model configuration
LMM_MODEL = os.getenv("LMM_MODEL", "gemini-2.5-pro")
LMM_TEMPERATURE = float(os.getenv("LMM_TEMPERATURE", "0.0"))
LMM_MAX_TOKENS = int(os.getenv("LMM_MAX_TOKENS", "16000"))

# Rasterization configuration
PDF_IMAGE_DPI = int(os.getenv("PDF_IMAGE_DPI", "300"))
MAX_IMAGE_DIMENSION = int(os.getenv("MAX_IMAGE_DIMENSION", "1800"))  # long edge, pixels

# Extraction defaults
MIB = 1024 * 1024
DEFAULT_MAX_BATCH_BYTES = 8 * MIB
DEFAULT_DOCUMENT_TYPE = os.getenv("DOCUMENT_TYPE", "oil-gas-contacts")
DEFAULT_EXTRACTION_METHOD = os.getenv("EXTRACTION_METHOD", "pdf-vision-batch")

# Paths
PROMPT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompt_templates")

# Request timeout scaling when REQUEST_TIMEOUT_MS is not set
MIN_REQUEST_TIMEOUT_MS = 30_000
MAX_REQUEST_TIMEOUT_MS = 120_000
TIMEOUT_MS_PER_MIB = 10_000


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class PipelineConfig:
    """
    Tunables for batching, pacing and retrying extraction requests.

    All durations are in milliseconds. Every field has a default, so
    ``PipelineConfig()`` is a valid configuration.
    """

    max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES
    inter_batch_delay_ms: int = 2000
    backoff_base_ms: int = 1000
    backoff_max_delay_ms: int = 30_000
    backoff_max_attempts: int = 5
    request_timeout_ms: Optional[int] = None
    degraded_image_delay_ms: int = 500

    def __post_init__(self):
        if self.max_batch_bytes <= 0:
            raise ValueError("max_batch_bytes must be positive")
        if self.backoff_max_attempts < 1:
            raise ValueError("backoff_max_attempts must be at least 1")
        for name in ("inter_batch_delay_ms", "backoff_base_ms", "backoff_max_delay_ms", "degraded_image_delay_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.request_timeout_ms is not None and self.request_timeout_ms <= 0:
            raise ValueError("request_timeout_ms must be positive")

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a configuration from environment variables.

        Each field is read from the upper-cased variable of the same name
        (``MAX_BATCH_BYTES``, ``BACKOFF_BASE_MS``, ...). Keyword overrides
        that are not None win over the environment.
        """
        values = {}
        for field in fields(cls):
            env_value = _env_int(field.name.upper())
            if env_value is not None:
                values[field.name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def timeout_for(self, payload_bytes: int) -> float:
        """Request timeout in seconds for a payload of the given size."""
        if self.request_timeout_ms is not None:
            return self.request_timeout_ms / 1000
        scaled = MIN_REQUEST_TIMEOUT_MS + TIMEOUT_MS_PER_MIB * payload_bytes / MIB
        return min(max(scaled, MIN_REQUEST_TIMEOUT_MS), MAX_REQUEST_TIMEOUT_MS) / 1000

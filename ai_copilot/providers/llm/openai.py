"""Native OpenAI chat completions surface."""
from __future__ import annotations

from .surface import OpenAICompatibleSurface


class OpenAISurface(OpenAICompatibleSurface):
    """OpenAI's own API, where ``base_url`` already carries the version prefix."""

    name = "openai"
    completions_path = "/chat/completions"
    models_path = "/models"


__all__ = ["OpenAISurface"]

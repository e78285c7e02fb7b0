# chuk_ai_agent_engine/model_registry.py
"""
Model configuration lookup.

A ``ModelRegistry`` is an ordinary object owned by the caller: construct one,
register any extra model families, and pass it to the components that need
model-specific behaviour (token counting, persona role). There is no
process-wide instance.

Usage::

    registry = ModelRegistry()
    registry.register(ModelConfig(pattern=r"^mistral", encoding=TokenizerEncoding.CL100K_BASE))

    registry.get_encoding("mistral-large")   # -> "cl100k_base"
"""

from __future__ import annotations

import logging
import re
from enum import Enum

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class PersonaRole(str, Enum):
    """Role used for persona / system instructions."""

    SYSTEM = "system"
    DEVELOPER = "developer"


class TokenizerEncoding(str, Enum):
    """Tokenizer encodings understood by tiktoken."""

    O200K_BASE = "o200k_base"
    CL100K_BASE = "cl100k_base"


class ModelConfig(BaseModel):
    """Configuration for a model or model family."""

    pattern: str | None = Field(default=None, description="Case-insensitive regex matched against the model name")
    exact_match: str | None = None

    persona_role: PersonaRole = PersonaRole.SYSTEM
    encoding: TokenizerEncoding = TokenizerEncoding.O200K_BASE

    supports_tool_calls: bool = True
    max_tokens: int | None = None

    family: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _require_matcher(self) -> ModelConfig:
        if not self.pattern and not self.exact_match:
            raise ValueError("Model config must have either pattern or exact_match")
        return self

    def matches(self, model: str) -> bool:
        if self.exact_match is not None:
            return model == self.exact_match
        return re.search(self.pattern or "", model, re.IGNORECASE) is not None


class ModelRegistry:
    """
    Ordered list of model configurations. The most recently registered
    matching config wins; results are cached per model name.
    """

    def __init__(self, logger: logging.Logger | None = None, register_defaults: bool = True) -> None:
        self._configs: list[ModelConfig] = []
        self._cache: dict[str, ModelConfig] = {}
        self._logger = logger or logging.getLogger(__name__)
        if register_defaults:
            self._register_defaults()

    def _register_defaults(self) -> None:
        # Registered first so it is checked last
        self.register(
            ModelConfig(
                pattern=r".*",
                family="unknown",
                description="Default fallback configuration",
            )
        )
        self.register(
            ModelConfig(
                pattern=r"^claude",
                encoding=TokenizerEncoding.CL100K_BASE,
                family="claude",
                description="Claude family models",
            )
        )
        self.register(
            ModelConfig(
                pattern=r"^o\d+",
                persona_role=PersonaRole.DEVELOPER,
                family="o-series",
                description="O-series reasoning models",
            )
        )
        self.register(
            ModelConfig(
                pattern=r"^gpt-4",
                family="gpt-4",
                description="GPT-4 family models",
            )
        )

    def register(self, config: ModelConfig) -> None:
        """Register a config ahead of all existing ones."""
        self._configs.insert(0, config)
        self._cache.clear()
        self._logger.debug(f"Registered model config: {config.family or config.exact_match or config.pattern}")

    def get_config(self, model: str) -> ModelConfig:
        """Return the first matching config for ``model``."""
        cached = self._cache.get(model)
        if cached is not None:
            return cached

        for config in self._configs:
            if config.matches(model):
                self._cache[model] = config
                return config

        raise LookupError(f"No model configuration matches '{model}'")

    def get_encoding(self, model: str) -> TokenizerEncoding:
        return self.get_config(model).encoding

    def get_persona_role(self, model: str) -> PersonaRole:
        return self.get_config(model).persona_role

    def supports_tool_calls(self, model: str) -> bool:
        return self.get_config(model).supports_tool_calls

    def get_family(self, model: str) -> str | None:
        return self.get_config(model).family

    def get_all_configs(self) -> list[ModelConfig]:
        return list(self._configs)

    def clear_cache(self) -> None:
        self._cache.clear()

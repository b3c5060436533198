"""Embedding provider detection."""

import asyncio
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

EMBEDDING_PATTERNS = ("embed", "embedding", "bge", "minilm", "e5-")


@dataclass
class AIProvider:
    """Represents an embedding provider configuration."""

    name: str
    type: str  # "local" or "cloud"
    api_base: Optional[str]
    api_key: Optional[str] = None
    embedding_models: List[str] = field(default_factory=list)
    available: bool = False
    latency_ms: Optional[float] = None


def _local_configs() -> List[Dict[str, str]]:
    return [
        {
            "name": "ollama",
            "api_base": os.getenv("OLLAMA_API_BASE", "http://localhost:11434"),
            "models_endpoint": "/api/tags",
        },
        {
            "name": "lmstudio",
            "api_base": os.getenv("LMSTUDIO_API_BASE", "http://localhost:1234"),
            "models_endpoint": "/v1/models",
        },
        {
            "name": "vllm",
            "api_base": os.getenv("VLLM_API_BASE", "http://localhost:8000"),
            "models_endpoint": "/v1/models",
        },
    ]


_CLOUD_CONFIGS = [
    {
        "name": "openai",
        "api_key_env": "OPENAI_API_KEY",
        "embedding_models": ["text-embedding-3-small", "text-embedding-3-large"],
    },
    {
        "name": "cohere",
        "api_key_env": "COHERE_API_KEY",
        "embedding_models": ["embed-multilingual-v3.0", "embed-english-v3.0"],
    },
    {
        "name": "gemini",
        "api_key_env": "GEMINI_API_KEY",
        "embedding_models": ["text-embedding-004"],
    },
]


def is_embedding_model(name: str) -> bool:
    lowered = name.lower()
    return any(pattern in lowered for pattern in EMBEDDING_PATTERNS)


class AIDetector:
    """Finds reachable local embedding servers and configured cloud keys."""

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout
        self.detected_providers: List[AIProvider] = []

    async def detect_all_providers(self, include_local: bool = True) -> List[AIProvider]:
        providers = []
        if include_local:
            results = await asyncio.gather(
                *(self._test_local_provider(config) for config in _local_configs()),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, AIProvider) and result.available:
                    providers.append(result)

        providers.extend(self._detect_cloud_providers())
        self.detected_providers = providers
        return providers

    async def _test_local_provider(self, config: Dict[str, str]) -> AIProvider:
        """Query a local server's model listing."""
        api_base = config["api_base"]
        try:
            loop = asyncio.get_running_loop()
            start_time = loop.time()

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{api_base}{config['models_endpoint']}")
                response.raise_for_status()
                latency = (loop.time() - start_time) * 1000
                models = self._parse_models(response.json(), config["name"])

            return AIProvider(
                name=config["name"],
                type="local",
                api_base=api_base,
                embedding_models=models,
                available=bool(models),
                latency_ms=latency,
            )
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug(f"Provider {config['name']} at {api_base} not available: {e}")

        return AIProvider(name=config["name"], type="local", api_base=api_base)

    def _parse_models(self, models_data: Dict, provider_name: str) -> List[str]:
        """Embedding model names from a model listing."""
        if provider_name == "ollama":
            names = [model.get("name", "") for model in models_data.get("models", [])]
        else:
            # OpenAI-compatible format (LM Studio, vLLM)
            names = [model.get("id", "") for model in models_data.get("data", [])]
        return [name for name in names if name and is_embedding_model(name)]

    def _detect_cloud_providers(self) -> List[AIProvider]:
        providers = []
        for config in _CLOUD_CONFIGS:
            api_key = os.getenv(config["api_key_env"])
            if api_key:
                providers.append(
                    AIProvider(
                        name=config["name"],
                        type="cloud",
                        api_base=None,
                        api_key=api_key,
                        embedding_models=list(config["embedding_models"]),
                        available=True,
                    )
                )
        return providers

    def get_best_providers(self) -> List[AIProvider]:
        """Available providers, local first, fastest first."""
        available = [p for p in self.detected_providers if p.available]
        return sorted(
            available,
            key=lambda p: (p.type != "local", p.latency_ms or float("inf")),
        )

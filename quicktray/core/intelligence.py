"""Embedding generation through a LiteLLM Router."""

import logging
from typing import Any, Dict, List, Optional

from litellm import Router

from quicktray.config import QuickTrayConfig

from .ai_detector import AIDetector, AIProvider

logger = logging.getLogger(__name__)

EMBEDDING_MODEL_NAME = "quicktray-embedding"


class EmbeddingIntelligence:
    """Sentence embeddings from the best available provider.

    With no provider configured or detected the client stays in fallback
    mode and every embedding is absent, which reduces search to lexical
    matching.
    """

    def __init__(
        self,
        providers: Optional[List[AIProvider]] = None,
        config: Optional[QuickTrayConfig] = None,
    ):
        self.config = config
        self.providers = list(providers or [])
        self.router = None
        self.fallback_mode = False
        self._initialize_router()

    @classmethod
    async def detect(cls, config: QuickTrayConfig) -> "EmbeddingIntelligence":
        """Build a client from the configured model plus detected providers."""
        providers = []
        if config.embedding_model:
            providers.append(
                AIProvider(
                    name="configured",
                    type="cloud",
                    api_base=config.embedding_api_base,
                    api_key=config.embedding_api_key,
                    embedding_models=[config.embedding_model],
                    available=True,
                )
            )

        detector = AIDetector()
        await detector.detect_all_providers(include_local=config.detect_local_providers)
        providers.extend(detector.get_best_providers())
        return cls(providers, config)

    def _initialize_router(self):
        model_list = self._build_model_list()
        if not model_list:
            logger.warning("No embedding providers available, using lexical search only")
            self.fallback_mode = True
            return

        try:
            self.router = Router(
                model_list=model_list,
                num_retries=self.config.max_retries if self.config else 2,
                timeout=self.config.request_timeout if self.config else 30.0,
                cooldown_time=self.config.cooldown_time if self.config else 60.0,
            )
            logger.info(
                f"Initialized embedding router with {len(model_list)} deployments"
            )
        except Exception as e:
            logger.error(f"Failed to initialize router: {e}")
            self.fallback_mode = True

    def _build_model_list(self) -> List[Dict[str, Any]]:
        """One deployment per provider, all under the same model group."""
        model_list = []
        for provider in self.providers:
            if not provider.available or not provider.embedding_models:
                continue
            model_list.append(
                {
                    "model_name": EMBEDDING_MODEL_NAME,
                    "litellm_params": self._get_litellm_params(
                        provider, provider.embedding_models[0]
                    ),
                }
            )
        return model_list

    def _get_litellm_params(self, provider: AIProvider, model: str) -> Dict[str, Any]:
        """Get LiteLLM parameters for a provider and model."""
        params: Dict[str, Any] = {}

        if provider.name == "configured":
            params["model"] = model
        elif provider.name == "ollama":
            params["model"] = f"ollama/{model}"
        elif provider.type == "local":
            # LM Studio and other OpenAI-compatible servers
            params["model"] = f"openai/{model}"
            params["api_key"] = "dummy"
        else:
            params["model"] = f"{provider.name}/{model}"

        if provider.api_base:
            if provider.type == "local" and provider.name != "ollama":
                params["api_base"] = f"{provider.api_base}/v1"
            else:
                params["api_base"] = provider.api_base
        if provider.api_key:
            params["api_key"] = provider.api_key

        return params

    def generate_embedding(self, text: str) -> Optional[List[float]]:
        """Embedding of ``text``, or None when no provider can produce one."""
        if self.fallback_mode or not self.router or not text:
            return None

        try:
            response = self.router.embedding(model=EMBEDDING_MODEL_NAME, input=[text])
            entry = response.data[0]
            vector = entry["embedding"] if isinstance(entry, dict) else entry.embedding
            return list(vector)
        except Exception as e:
            logger.warning(f"Embedding generation failed: {e}")
            return None

    def get_provider_status(self) -> Dict[str, Any]:
        if self.fallback_mode:
            return {
                "mode": "lexical",
                "providers": [],
                "message": "No embedding providers available, semantic scoring disabled",
            }

        return {
            "mode": "router",
            "providers": [
                {
                    "name": p.name,
                    "type": p.type,
                    "model": p.embedding_models[0] if p.embedding_models else None,
                    "latency_ms": p.latency_ms,
                }
                for p in self.providers
                if p.available
            ],
            "router_configured": self.router is not None,
        }

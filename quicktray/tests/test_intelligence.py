"""Tests for embedding generation and provider detection."""

from pathlib import Path

import httpx
import pytest
from unittest.mock import patch, Mock, AsyncMock

from quicktray.config import QuickTrayConfig
from quicktray.core.ai_detector import AIDetector, AIProvider, is_embedding_model
from quicktray.core.intelligence import EMBEDDING_MODEL_NAME, EmbeddingIntelligence


def local_provider(name="ollama", model="nomic-embed-text"):
    return AIProvider(
        name=name,
        type="local",
        api_base="http://localhost:11434",
        embedding_models=[model],
        available=True,
        latency_ms=3.0,
    )


class TestEmbeddingIntelligence:
    """Test the embedding collaborator."""

    def test_no_providers_means_fallback(self):
        intelligence = EmbeddingIntelligence([])

        assert intelligence.fallback_mode is True
        assert intelligence.generate_embedding("anything") is None
        assert intelligence.get_provider_status()["mode"] == "lexical"

    def test_generate_embedding_success(self):
        with patch("quicktray.core.intelligence.Router") as router_cls:
            router = router_cls.return_value
            router.embedding.return_value = Mock(data=[{"embedding": [0.1, 0.2, 0.3]}])
            intelligence = EmbeddingIntelligence([local_provider()])

            result = intelligence.generate_embedding("test content")

        assert result == [0.1, 0.2, 0.3]
        router.embedding.assert_called_once_with(
            model=EMBEDDING_MODEL_NAME, input=["test content"]
        )

    def test_generate_embedding_failure_returns_none(self):
        with patch("quicktray.core.intelligence.Router") as router_cls:
            router_cls.return_value.embedding.side_effect = Exception("API Error")
            intelligence = EmbeddingIntelligence([local_provider()])

            assert intelligence.generate_embedding("test content") is None

    def test_router_init_failure_means_fallback(self):
        with patch("quicktray.core.intelligence.Router", side_effect=Exception("bad")):
            intelligence = EmbeddingIntelligence([local_provider()])

        assert intelligence.fallback_mode is True

    def test_model_list(self):
        with patch("quicktray.core.intelligence.Router") as router_cls:
            EmbeddingIntelligence(
                [
                    local_provider(),
                    AIProvider("unused", "local", "http://x", available=False),
                ]
            )

        model_list = router_cls.call_args.kwargs["model_list"]
        assert len(model_list) == 1
        assert model_list[0]["model_name"] == EMBEDDING_MODEL_NAME
        assert model_list[0]["litellm_params"] == {
            "model": "ollama/nomic-embed-text",
            "api_base": "http://localhost:11434",
        }

    def test_litellm_params(self):
        intelligence = EmbeddingIntelligence([])

        lmstudio = AIProvider("lmstudio", "local", "http://localhost:1234", available=True)
        assert intelligence._get_litellm_params(lmstudio, "text-embedding-bge") == {
            "model": "openai/text-embedding-bge",
            "api_key": "dummy",
            "api_base": "http://localhost:1234/v1",
        }

        openai = AIProvider("openai", "cloud", None, api_key="sk-test", available=True)
        assert intelligence._get_litellm_params(openai, "text-embedding-3-small") == {
            "model": "openai/text-embedding-3-small",
            "api_key": "sk-test",
        }

    @pytest.mark.asyncio
    async def test_detect_uses_configured_model(self):
        config = QuickTrayConfig(
            home=Path("/tmp/quicktray-test"),
            embedding_model="openai/text-embedding-3-small",
            detect_local_providers=False,
        )

        with patch.object(
            AIDetector, "detect_all_providers", AsyncMock(return_value=[])
        ) as detect, patch("quicktray.core.intelligence.Router"):
            intelligence = await EmbeddingIntelligence.detect(config)

        detect.assert_awaited_once_with(include_local=False)
        assert intelligence.fallback_mode is False
        assert intelligence.providers[0].embedding_models == [
            "openai/text-embedding-3-small"
        ]


class TestAIDetector:
    def test_is_embedding_model(self):
        assert is_embedding_model("nomic-embed-text:latest")
        assert is_embedding_model("text-embedding-3-small")
        assert not is_embedding_model("llama3:8b")

    def test_parse_models(self):
        detector = AIDetector()

        ollama = {"models": [{"name": "llama3"}, {"name": "nomic-embed-text"}]}
        assert detector._parse_models(ollama, "ollama") == ["nomic-embed-text"]

        openai_style = {"data": [{"id": "qwen"}, {"id": "text-embedding-bge-m3"}]}
        assert detector._parse_models(openai_style, "lmstudio") == ["text-embedding-bge-m3"]

    def test_cloud_providers_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("COHERE_API_KEY", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        providers = AIDetector()._detect_cloud_providers()

        assert [p.name for p in providers] == ["openai"]
        assert providers[0].api_key == "sk-test"

    @pytest.mark.asyncio
    async def test_local_provider_detection(self):
        def handler(request):
            return httpx.Response(200, json={"models": [{"name": "nomic-embed-text"}]})

        real_client = httpx.AsyncClient

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch("quicktray.core.ai_detector.httpx.AsyncClient", client_factory):
            provider = await AIDetector()._test_local_provider(
                {
                    "name": "ollama",
                    "api_base": "http://localhost:11434",
                    "models_endpoint": "/api/tags",
                }
            )

        assert provider.available is True
        assert provider.embedding_models == ["nomic-embed-text"]

    @pytest.mark.asyncio
    async def test_unreachable_local_provider(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        real_client = httpx.AsyncClient

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch("quicktray.core.ai_detector.httpx.AsyncClient", client_factory):
            provider = await AIDetector()._test_local_provider(
                {
                    "name": "lmstudio",
                    "api_base": "http://localhost:1234",
                    "models_endpoint": "/v1/models",
                }
            )

        assert provider.available is False

    def test_best_providers_prefer_local(self):
        detector = AIDetector()
        cloud = AIProvider("openai", "cloud", None, embedding_models=["m"], available=True)
        slow = local_provider("vllm")
        slow.latency_ms = 50.0
        fast = local_provider("ollama")
        detector.detected_providers = [cloud, slow, fast]

        assert detector.get_best_providers() == [fast, slow, cloud]

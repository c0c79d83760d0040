"""
Ollama Client for the optional constellation providers
======================================================

Provides local LLM capabilities through Ollama for:
- Narrative synthesis of a constellation (text generation)
- Thought embeddings for the semantic clustering path
- Model health monitoring

Calls never raise: every method returns a result dictionary with a
``success`` flag and an ``error`` message on failure, so callers can
fall back to the local lexical/templated results.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import numpy as np

from constellation.config.settings import settings

logger = logging.getLogger(__name__)


class ModelType(Enum):
    """Types of Ollama models used by the constellation"""
    NARRATIVE = "narrative"    # Text generation (qwen2.5:7b)
    FAST = "fast"              # Lightweight fallback (llama3.2:3b)
    EMBEDDING = "embedding"    # Text embeddings (nomic-embed-text)


class ModelStatus(Enum):
    """Model availability status"""
    HEALTHY = "healthy"
    SLOW = "slow"
    ERROR = "error"


@dataclass
class ModelConfig:
    """Configuration for an Ollama model"""
    name: str
    type: ModelType
    timeout: float = 60.0
    healthy_response_time: float = 5.0
    temperature: float = 0.4
    top_p: float = 0.9


@dataclass
class ModelHealthStatus:
    """Health status of a model"""
    model_name: str
    status: ModelStatus
    last_check: datetime
    response_time: float
    error_message: Optional[str] = None


class OllamaClient:
    """Thin async wrapper over the Ollama HTTP API"""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint = (endpoint or settings.OLLAMA_URL or "").rstrip("/")
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self.client = http_client or httpx.AsyncClient(timeout=self.timeout)
        self.models: Dict[str, ModelConfig] = {
            "qwen2.5:7b": ModelConfig(name="qwen2.5:7b", type=ModelType.NARRATIVE, timeout=self.timeout),
            "llama3.2:3b": ModelConfig(name="llama3.2:3b", type=ModelType.FAST, timeout=min(self.timeout, 30.0)),
            "nomic-embed-text": ModelConfig(
                name="nomic-embed-text", type=ModelType.EMBEDDING, timeout=min(self.timeout, 15.0), temperature=0.0
            ),
        }
        self.request_history: List[Dict[str, Any]] = []
        self.max_history = 500

    def _config(self, model_name: str) -> ModelConfig:
        config = self.models.get(model_name)
        if config is None:
            # Unknown models are allowed; they just get default settings
            config = ModelConfig(name=model_name, type=ModelType.NARRATIVE, timeout=self.timeout)
        return config

    @staticmethod
    def _json_object(response: httpx.Response) -> Dict[str, Any]:
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"malformed response: expected a JSON object, got {type(payload).__name__}")
        return payload

    async def generate_text(self, model_name: str, prompt: str, **kwargs) -> Dict[str, Any]:
        """Generate text using the specified Ollama model"""
        start_time = time.time()
        config = self._config(model_name)

        try:
            response = await self.client.post(
                f"{self.endpoint}/api/generate",
                json={
                    "model": model_name,
                    "prompt": prompt,
                    "stream": False,
                    "options": {
                        "temperature": kwargs.get("temperature", config.temperature),
                        "top_p": kwargs.get("top_p", config.top_p),
                        "num_predict": kwargs.get("max_tokens", 768),
                    },
                },
                timeout=kwargs.get("timeout") or config.timeout,
            )
            processing_time = time.time() - start_time

            if response.status_code != 200:
                raise httpx.HTTPStatusError(
                    f"HTTP {response.status_code}: {response.text}",
                    request=response.request,
                    response=response,
                )

            result = self._json_object(response)
            self._track_request(model_name, "generate", processing_time, True)
            return {
                "success": True,
                "response": result.get("response", ""),
                "model": model_name,
                "processing_time": processing_time,
                "eval_count": result.get("eval_count", 0),
            }

        except (httpx.HTTPError, ValueError, TypeError) as e:
            processing_time = time.time() - start_time
            self._track_request(model_name, "generate", processing_time, False, str(e))
            logger.error(f"Text generation failed with {model_name}: {e}")
            return {
                "success": False,
                "error": str(e) or e.__class__.__name__,
                "model": model_name,
                "processing_time": processing_time,
            }

    async def generate_embedding(
        self, text: str, model_name: str = "nomic-embed-text", timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """Generate one embedding vector using the Ollama embedding model"""
        start_time = time.time()
        config = self._config(model_name)

        try:
            response = await self.client.post(
                f"{self.endpoint}/api/embeddings",
                json={"model": model_name, "prompt": text},
                timeout=timeout or config.timeout,
            )
            processing_time = time.time() - start_time

            if response.status_code != 200:
                raise httpx.HTTPStatusError(
                    f"HTTP {response.status_code}: {response.text}",
                    request=response.request,
                    response=response,
                )

            embedding = np.asarray(self._json_object(response).get("embedding", []), dtype=float)
            if embedding.ndim != 1:
                raise ValueError("malformed response: embedding is not a vector")
            self._track_request(model_name, "embeddings", processing_time, True)
            return {
                "success": True,
                "embedding": embedding,
                "model": model_name,
                "processing_time": processing_time,
                "dimensions": int(embedding.shape[0]),
            }

        except (httpx.HTTPError, ValueError, TypeError) as e:
            processing_time = time.time() - start_time
            self._track_request(model_name, "embeddings", processing_time, False, str(e))
            logger.error(f"Embedding generation failed with {model_name}: {e}")
            return {
                "success": False,
                "error": str(e) or e.__class__.__name__,
                "model": model_name,
                "processing_time": processing_time,
            }

    async def check_health(self) -> ModelHealthStatus:
        """Check that the Ollama server answers and how quickly"""
        start_time = time.time()
        try:
            response = await self.client.get(f"{self.endpoint}/api/tags", timeout=5.0)
            response_time = time.time() - start_time
            if response.status_code != 200:
                raise httpx.HTTPStatusError(
                    f"HTTP {response.status_code}", request=response.request, response=response
                )
            status = ModelStatus.HEALTHY if response_time <= 5.0 else ModelStatus.SLOW
            return ModelHealthStatus(
                model_name="ollama",
                status=status,
                last_check=datetime.now(),
                response_time=response_time,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Ollama health check failed: {e}")
            return ModelHealthStatus(
                model_name="ollama",
                status=ModelStatus.ERROR,
                last_check=datetime.now(),
                response_time=time.time() - start_time,
                error_message=str(e),
            )

    def _track_request(
        self,
        model_name: str,
        request_type: str,
        processing_time: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        self.request_history.append({
            "timestamp": datetime.now().isoformat(),
            "model": model_name,
            "type": request_type,
            "processing_time": processing_time,
            "success": success,
            "error": error,
        })
        if len(self.request_history) > self.max_history:
            self.request_history = self.request_history[-self.max_history:]

    async def close(self) -> None:
        await self.client.aclose()

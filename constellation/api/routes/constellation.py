"""
Constellation API Routes - analysis, layout and the optional provider paths

POST /api/constellation/analyze     thoughts -> nodes, clusters, insights
POST /api/constellation/organize    layout as a service
POST /api/constellation/embeddings  semantic clustering (fail-soft)
POST /api/constellation/synthesis   LLM narrative (fail-soft to templated)
GET  /api/constellation/presets     merge-threshold presets
GET  /api/constellation/config      canvas and threshold defaults
"""

import logging
import random
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, status

from constellation.config.settings import settings
from constellation.models.analysis import AnalyzeRequest, ConstellationAnalysis, MergePreset
from constellation.models.layout import LayoutRequest, LayoutResult
from constellation.models.providers import EmbeddingRequest, EmbeddingResult, NarrativeRequest, NarrativeResult
from constellation.models.thought import Thought
from constellation.services.analyzer import ConstellationAnalyzer
from constellation.services.embeddings import EmbeddingClusterer, as_similarity_fn, parse_similarity_matrix
from constellation.services.errors import ConstellationInputError
from constellation.services.graph import SimilarityFn, dedupe_thoughts, lexical_similarity, prune_dangling, symmetrize
from constellation.services.layout import LayoutEngine
from constellation.services.merge import MERGE_PRESETS
from constellation.services.narrative import NarrativeSynthesizer
from constellation.services.ollama_client import OllamaClient
from constellation.services.scope import filter_by_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/constellation", tags=["constellation"])

# Lazy initialization so importing the app never touches the providers
_ollama_client: Optional[OllamaClient] = None
_embedding_clusterer: Optional[EmbeddingClusterer] = None
_narrative_synthesizer: Optional[NarrativeSynthesizer] = None


def get_ollama_client() -> OllamaClient:
    global _ollama_client
    if _ollama_client is None:
        _ollama_client = OllamaClient()
    return _ollama_client


def get_embedding_clusterer() -> EmbeddingClusterer:
    global _embedding_clusterer
    if _embedding_clusterer is None:
        _embedding_clusterer = EmbeddingClusterer(ollama_client=get_ollama_client())
    return _embedding_clusterer


def get_narrative_synthesizer() -> NarrativeSynthesizer:
    global _narrative_synthesizer
    if _narrative_synthesizer is None:
        _narrative_synthesizer = NarrativeSynthesizer(ollama_client=get_ollama_client())
    return _narrative_synthesizer


async def close_providers() -> None:
    """Close the shared Ollama HTTP client; the next request builds fresh providers."""
    global _ollama_client, _embedding_clusterer, _narrative_synthesizer
    client = _ollama_client
    _ollama_client = _embedding_clusterer = _narrative_synthesizer = None
    if client is not None:
        await client.close()


def _rng(seed: Optional[int]) -> random.Random:
    return random.Random(seed) if seed is not None else random.Random()


def _similarity_fn(request: AnalyzeRequest, thoughts: List[Thought]) -> SimilarityFn:
    if not request.similarity_matrix:
        return lexical_similarity
    pairs = parse_similarity_matrix(request.similarity_matrix, [thought.id for thought in thoughts])
    return as_similarity_fn(pairs)


@router.post("/analyze", response_model=ConstellationAnalysis, status_code=status.HTTP_200_OK)
async def analyze_constellation(request: AnalyzeRequest) -> ConstellationAnalysis:
    """
    Analyze a batch of thoughts.

    Filters by date window, builds the connection graph, merges near
    duplicates at the requested threshold, sizes bubbles by density and
    narrates the result. A ``similarityMatrix`` from /embeddings replaces
    lexical similarity for the pairs it covers.

    Raises:
        400: Invalid date window or threshold
        500: Internal processing error
    """
    try:
        thoughts = filter_by_window(request.thoughts, request.date_window, request.reference_date)
        analyzer = ConstellationAnalyzer(
            merge_threshold=request.merge_threshold,
            similarity_fn=_similarity_fn(request, thoughts),
            rng=_rng(request.seed),
        )
        return analyzer.analyze(thoughts)

    except (ConstellationInputError, ValueError) as e:
        logger.warning(f"Invalid analyze request: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Constellation analysis error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error analyzing constellation",
        )


@router.post("/organize", response_model=LayoutResult, status_code=status.HTTP_200_OK)
async def organize_constellation(request: LayoutRequest) -> LayoutResult:
    """
    Layout as a service: same output shape as the in-process layout engine.

    Positions are fresh on every call; easing toward them is up to the caller.
    """
    try:
        engine = LayoutEngine(
            canvas_width=request.canvas_width,
            canvas_height=request.canvas_height,
            padding=request.padding,
            rng=_rng(request.seed),
        )
        return engine.layout(symmetrize(prune_dangling(dedupe_thoughts(request.thoughts))))

    except (ConstellationInputError, ValueError) as e:
        logger.warning(f"Invalid organize request: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Constellation layout error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error organizing constellation",
        )


@router.post("/embeddings", response_model=EmbeddingResult, status_code=status.HTTP_200_OK)
async def embed_constellation(request: EmbeddingRequest) -> EmbeddingResult:
    """Semantic clusters; provider failures come back in ``error`` with empty data."""
    return await get_embedding_clusterer().embed_thoughts(request.thoughts)


@router.post("/synthesis", response_model=NarrativeResult, status_code=status.HTTP_200_OK)
async def synthesize_constellation(request: NarrativeRequest) -> NarrativeResult:
    """LLM narrative of the constellation, or the templated one with ``error`` set."""
    return await get_narrative_synthesizer().narrate(request)


@router.get("/presets", response_model=List[MergePreset])
async def list_merge_presets() -> List[MergePreset]:
    return [MergePreset(label=label, threshold=threshold) for label, threshold in MERGE_PRESETS]


@router.get("/config")
async def constellation_config() -> Dict[str, float]:
    """Canvas and threshold defaults the client should start from."""
    return {
        "connectionThreshold": settings.CONNECTION_THRESHOLD,
        "defaultMergeThreshold": settings.DEFAULT_MERGE_THRESHOLD,
        "canvasWidth": settings.CANVAS_WIDTH,
        "canvasHeight": settings.CANVAS_HEIGHT,
        "canvasPadding": settings.CANVAS_PADDING,
    }

import re
from typing import List

import httpx
import numpy as np
from app.settings import Settings, settings
from domain.errors import ErrorCategory, RemoteCallError

HASH_SCHEME = "hash"
OPENAI_SCHEME = "openai"

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def hash_embedding(text: str, dim: int = 256) -> np.ndarray:
    """Deterministic bag-of-tokens vector: no network, no semantics beyond shared tokens."""
    vec = np.zeros(dim, dtype=np.float64)
    tokens = _NON_ALNUM.sub(" ", (text or "").lower()).split()
    for t in tokens:
        vec[sum(ord(c) for c in t) % dim] += 1.0
    norm = np.linalg.norm(vec)
    return vec / norm if norm else vec


def provider_embeddings_available(cfg: Settings = settings) -> bool:
    return bool(cfg.OPENAI_API_KEY) and not cfg.AI_FORCE_MOCK


async def embed_texts_openai(texts: List[str], cfg: Settings = settings) -> List[List[float]]:
    api_key = cfg.OPENAI_API_KEY
    model = cfg.OPENAI_EMBEDDING_MODEL
    if not api_key:
        return [hash_embedding(t, cfg.EMBEDDING_DIM).tolist() for t in texts]
    url = "https://api.openai.com/v1/embeddings"
    headers = {"Authorization": f"Bearer {api_key}"}
    payload = {"model": model, "input": [t[:2000] for t in texts]}
    try:
        async with httpx.AsyncClient(timeout=60) as client:
            r = await client.post(url, headers=headers, json=payload)
            r.raise_for_status()
            data = r.json()
    except httpx.TimeoutException as exc:
        raise RemoteCallError(f"embedding timeout: {exc}", category=ErrorCategory.TIMEOUT) from exc
    except httpx.HTTPStatusError as exc:
        raise RemoteCallError(f"embedding request failed: HTTP {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
        raise RemoteCallError(f"embedding network error: {exc}", category=ErrorCategory.NETWORK) from exc
    return [item["embedding"] for item in data["data"]]


async def embed_texts(texts: List[str], scheme: str, cfg: Settings = settings) -> List[List[float]]:
    if not texts:
        return []
    if scheme == OPENAI_SCHEME:
        return await embed_texts_openai(texts, cfg)
    return [hash_embedding(t, cfg.EMBEDDING_DIM).tolist() for t in texts]

"""Score providers: the external services behind text and image similarity.

``ScoreProvider`` is the narrow interface the matcher depends on. The
default ``LLMScoreProvider`` asks a vision-capable chat model (OpenAI or
Bedrock, see ``casematch.llm_factory``) for a similarity score. Another
engine (an embedding index, a face matcher) only needs to implement the two
``score_*`` coroutines.

Every failure is returned as a ``ScoreOutcome.failure``; nothing raises to
the matcher.
"""

from __future__ import annotations

import abc
import asyncio
import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx
from langchain_core.messages import HumanMessage

from casematch.config import get_config
from casematch.llm_factory import get_langchain_llm, get_circuit_breaker_exception_class
from casematch.matching.cache import ScoreCache, make_key
from casematch.matching.json_sanitizer import parse_llm_json, extract_similarity_score
from casematch.matching.prompts import IMAGE_COMPARISON_PROMPT, IMAGE_TRAITS_PROMPT, build_text_prompt
from casematch.matching.result import ScoreOutcome
from casematch.utils.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitBreakerRegistry,
    get_circuit_breaker_registry,
)
from casematch.utils.logger import log_debug, log_error, log_warning

LLM_BREAKER = "llm_similarity"
IMAGE_BREAKER = "image_fetch"


@dataclass(frozen=True)
class CaseText:
    """The textual evidence of one case: child name and description."""

    name: Optional[str]
    description: Optional[str]


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    media_type: str

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


class ImageFetchError(Exception):
    """Raised when an image reference cannot be turned into image bytes."""


class ScoreProvider(abc.ABC):
    """Abstract source of text and image similarity scores."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short machine-readable name for logs."""

    @abc.abstractmethod
    async def score_text(self, first: CaseText, second: CaseText) -> ScoreOutcome:
        """Similarity of two (name, description) pairs."""

    @abc.abstractmethod
    async def score_images(self, first_uri: str, second_uri: str) -> ScoreOutcome:
        """Similarity of the people shown in two images."""


class LLMScoreProvider(ScoreProvider):
    """Score provider backed by a LangChain chat model.

    Args:
        llm: Chat model exposing ``ainvoke``. Built from configuration on
            first use when omitted.
        http_client: Client used for image downloads. A short-lived client
            is opened per fetch when omitted.
        cache: Cache of successful scores. An in-memory cache sized from
            configuration is used when omitted and SCORE_CACHE_ENABLED is set.
        config: Settings; defaults to ``get_config()``.
        registry: Circuit breaker registry; defaults to the global one.
    """

    def __init__(
        self,
        llm: Any = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ScoreCache] = None,
        config=None,
        registry: Optional[CircuitBreakerRegistry] = None,
    ):
        self.config = config or get_config()
        self._llm = llm
        self._http_client = http_client
        if cache is None and self.config.score_cache_enabled:
            cache = ScoreCache(
                max_size=self.config.score_cache_max_size,
                ttl_seconds=self.config.score_cache_ttl_seconds,
            )
        self.cache = cache
        self._registry = registry or get_circuit_breaker_registry()

    @property
    def name(self) -> str:
        return "llm"

    @property
    def llm(self):
        if self._llm is None:
            self._llm = get_langchain_llm()
        return self._llm

    # ── Text ─────────────────────────────────────────────────────

    async def score_text(self, first: CaseText, second: CaseText) -> ScoreOutcome:
        key = make_key("text", first.name, first.description, second.name, second.description)
        cached = await self._cache_get(key)
        if cached is not None:
            return cached

        prompt = build_text_prompt(first.name, first.description, second.name, second.description)
        try:
            payload = await self._ask([HumanMessage(content=prompt)])
            outcome = ScoreOutcome.ok(
                extract_similarity_score(payload),
                details={
                    "reasoning": payload.get("reasoning", ""),
                    "matchedAspects": payload.get("matchedAspects", {}),
                },
            )
        except CircuitBreakerOpenError as e:
            log_error("Text comparison skipped, LLM circuit open", error=str(e))
            return ScoreOutcome.failure(f"circuit open: {e}")
        except asyncio.TimeoutError:
            log_error("Text comparison timed out", timeout_seconds=self.config.match_request_timeout_seconds)
            return ScoreOutcome.failure("timeout")
        except Exception as e:
            log_error("Error comparing text content", error=str(e), error_type=type(e).__name__)
            return ScoreOutcome.failure(f"{type(e).__name__}: {e}")

        await self._cache_set(key, outcome)
        return outcome

    # ── Images ───────────────────────────────────────────────────

    async def score_images(self, first_uri: str, second_uri: str) -> ScoreOutcome:
        first_uri = (first_uri or "").strip()
        second_uri = (second_uri or "").strip()
        if not first_uri or not second_uri:
            return ScoreOutcome.unavailable("image missing on at least one case")

        key = make_key("image", first_uri, second_uri)
        cached = await self._cache_get(key)
        if cached is not None:
            return cached

        try:
            first_image, second_image = await asyncio.gather(
                self.fetch_image(first_uri), self.fetch_image(second_uri)
            )
            message = HumanMessage(
                content=[
                    {"type": "text", "text": IMAGE_COMPARISON_PROMPT},
                    {"type": "image_url", "image_url": {"url": first_image.to_data_url()}},
                    {"type": "image_url", "image_url": {"url": second_image.to_data_url()}},
                ]
            )
            payload = await self._ask([message])
            outcome = ScoreOutcome.ok(
                extract_similarity_score(payload),
                details={
                    "reasoning": payload.get("reasoning", ""),
                    "matchedFeatures": payload.get("matchedFeatures", {}),
                },
            )
        except CircuitBreakerOpenError as e:
            log_error("Image comparison skipped, circuit open", error=str(e))
            return ScoreOutcome.failure(f"circuit open: {e}")
        except asyncio.TimeoutError:
            log_error("Image comparison timed out", timeout_seconds=self.config.match_request_timeout_seconds)
            return ScoreOutcome.failure("timeout")
        except Exception as e:
            log_error("Error comparing images", error=str(e), error_type=type(e).__name__)
            return ScoreOutcome.failure(f"{type(e).__name__}: {e}")

        await self._cache_set(key, outcome)
        return outcome

    # ── Traits ───────────────────────────────────────────────────

    async def describe_image(self, uri: str) -> Optional[Dict[str, Any]]:
        """Extract structured physical traits of the child in an image.

        Returns the ``characteristics`` object from the model, or ``None``
        when the image cannot be fetched or the model answer is unusable.
        Trait extraction is advisory and never blocks a submission.
        """
        uri = (uri or "").strip()
        if not uri:
            return None
        try:
            image = await self.fetch_image(uri)
            message = HumanMessage(
                content=[
                    {"type": "text", "text": IMAGE_TRAITS_PROMPT},
                    {"type": "image_url", "image_url": {"url": image.to_data_url()}},
                ]
            )
            payload = await self._ask([message])
        except Exception as e:
            log_warning("Could not extract physical traits", error=str(e), error_type=type(e).__name__)
            return None

        traits = payload.get("characteristics")
        if not isinstance(traits, dict):
            log_warning("Trait extraction returned no characteristics")
            return None
        if isinstance(payload.get("description"), str):
            traits = {"summary": payload["description"], **traits}
        return traits

    async def fetch_image(self, uri: str) -> FetchedImage:
        """Download an image reference (or decode an inline data URI).

        Raises:
            ImageFetchError: unsupported reference, non-image body, or too large.
            httpx.HTTPError: network failure or non-2xx status.
        """
        if uri.startswith("data:"):
            return _decode_data_uri(uri, self.config.image_max_bytes)

        url = self.resolve_image_url(uri)
        breaker = self._breaker(IMAGE_BREAKER, (httpx.HTTPError, asyncio.TimeoutError))
        if breaker is None:
            image = await self._download(url)
        else:
            image = await breaker.call(self._download, url)
        log_debug("Image fetched", media_type=image.media_type, size=len(image.data))
        return image

    def resolve_image_url(self, uri: str) -> str:
        if uri.startswith(("http://", "https://")):
            return uri
        if not self.config.case_image_base_url:
            raise ImageFetchError("Relative image reference and CASE_IMAGE_BASE_URL is not set")
        return urljoin(self.config.case_image_base_url + "/", uri.lstrip("/"))

    async def _download(self, url: str) -> FetchedImage:
        timeout = httpx.Timeout(self.config.image_fetch_timeout_seconds)
        if self._http_client is not None:
            return await self._read_image(self._http_client, url, timeout)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            return await self._read_image(client, url, timeout)

    async def _read_image(self, client: httpx.AsyncClient, url: str, timeout: httpx.Timeout) -> FetchedImage:
        """Stream the body, stopping as soon as it exceeds IMAGE_MAX_BYTES."""
        limit = self.config.image_max_bytes
        async with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()

            media_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
            if not media_type.startswith("image/"):
                raise ImageFetchError(f"Reference did not return an image ({media_type})")

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > limit:
                raise ImageFetchError(f"Image is {declared} bytes, limit is {limit}")

            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > limit:
                    raise ImageFetchError(f"Image exceeds the {limit} byte limit")
                chunks.append(chunk)
        return FetchedImage(data=b"".join(chunks), media_type=media_type)

    # ── LLM plumbing ─────────────────────────────────────────────

    async def _ask(self, messages: List[HumanMessage]) -> dict:
        """Send messages to the model and parse its JSON answer."""

        async def _invoke():
            response = await asyncio.wait_for(
                self.llm.ainvoke(messages),
                timeout=self.config.match_request_timeout_seconds,
            )
            return response.content

        breaker = self._breaker(
            LLM_BREAKER, (get_circuit_breaker_exception_class(), asyncio.TimeoutError)
        )
        content = await _invoke() if breaker is None else await breaker.call(_invoke)
        return parse_llm_json(content)

    def _breaker(self, name: str, expected: tuple) -> Optional[CircuitBreaker]:
        if not self.config.circuit_breaker_enabled:
            return None
        return self._registry.get_or_register(
            name,
            CircuitBreakerConfig(
                failure_threshold=self.config.circuit_breaker_failure_threshold,
                timeout_seconds=self.config.circuit_breaker_timeout_seconds,
                half_open_max_calls=self.config.circuit_breaker_half_open_calls,
                expected_exception=expected,
                name=name,
            ),
        )

    async def _cache_get(self, key: str) -> Optional[ScoreOutcome]:
        if self.cache is None:
            return None
        outcome = await self.cache.get(key)
        if outcome is not None:
            log_debug("Score cache hit", key=key)
        return outcome

    async def _cache_set(self, key: str, outcome: ScoreOutcome) -> None:
        if self.cache is not None:
            await self.cache.set(key, outcome)


def _decode_data_uri(uri: str, max_bytes: int) -> FetchedImage:
    header, _, encoded = uri.partition(",")
    if not header.endswith(";base64") or not encoded:
        raise ImageFetchError("Only base64 data URIs are supported")
    media_type = header[len("data:"):-len(";base64")] or "image/jpeg"
    if not media_type.startswith("image/"):
        raise ImageFetchError(f"Data URI is not an image ({media_type})")
    # base64 carries 3 bytes per 4 characters
    if len(encoded) // 4 * 3 > max_bytes + 2:
        raise ImageFetchError(f"Inline image exceeds the {max_bytes} byte limit")
    try:
        data = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ImageFetchError(f"Invalid base64 image data: {e}")
    if len(data) > max_bytes:
        raise ImageFetchError(f"Inline image exceeds the {max_bytes} byte limit")
    return FetchedImage(data=data, media_type=media_type)

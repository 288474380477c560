"""
Infrastructure layer: Generative content provider client with retry logic.

Wraps the generative model API behind the three operations the game needs:
a pool of tree specimens, a seasonal specimen image and a fresh fun fact.
Every response is validated against an explicit schema so malformed output
fails fast as ProviderError instead of leaking into the game state.
"""
import logging
import time
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from arbor.config import settings
from arbor.domain.models import Difficulty, HabitatPoint, Season, Specimen
from arbor.infrastructure.api_constants import (
    APIConstants,
    GenerativeAPIEndpoints,
    TREE_POOL_SCHEMA,
    fun_fact_prompt,
    tree_image_prompt,
    tree_pool_prompt,
)

logger = logging.getLogger(__name__)


# Pydantic models for API responses
class InlineData(BaseModel):
    """Binary payload of a response part."""
    mime_type: str = Field(default=APIConstants.DEFAULT_IMAGE_MIME, alias="mimeType")
    data: str = Field(min_length=1)

    class Config:
        populate_by_name = True


class Part(BaseModel):
    """One part of a generated content block."""
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(default=None, alias="inlineData")

    class Config:
        populate_by_name = True


class Content(BaseModel):
    parts: List[Part] = Field(default_factory=list)


class Candidate(BaseModel):
    content: Optional[Content] = None


class GenerateContentResponse(BaseModel):
    """Response from the generateContent endpoint."""
    candidates: List[Candidate] = Field(default_factory=list)

    @property
    def parts(self) -> List[Part]:
        """Parts of the first candidate, if any."""
        if not self.candidates or self.candidates[0].content is None:
            return []
        return self.candidates[0].content.parts

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if part.text)


class GeneratedTree(BaseModel):
    """Tree entry as produced by the pool generation prompt."""
    common_name: str = Field(alias="commonName", min_length=1)
    scientific_name: str = Field(alias="scientificName", min_length=1)
    autumn_description: str = Field(alias="autumnDescription", min_length=1)
    spring_description: str = Field(alias="springDescription", min_length=1)
    fun_fact: str = Field(alias="funFact")
    habitats: List[HabitatPoint] = Field(min_length=1)

    class Config:
        populate_by_name = True
        str_strip_whitespace = True

    def to_specimen(self, specimen_id: str) -> Specimen:
        return Specimen(
            id=specimen_id,
            common_name=self.common_name,
            scientific_name=self.scientific_name,
            autumn_description=self.autumn_description,
            spring_description=self.spring_description,
            fun_fact=self.fun_fact,
            habitats=tuple(self.habitats),
        )


_tree_list_adapter = TypeAdapter(List[GeneratedTree])


class ProviderError(Exception):
    """Raised when the content provider cannot deliver usable content."""

    def __init__(self, message: str, status_code: int = 502):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ContentProvider:
    """
    Client for the generative content API.
    Implements retry logic with exponential backoff.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        """Initialize the API client with configuration."""
        self.base_url = base_url or settings.content_api_base_url
        self.api_key = api_key if api_key is not None else settings.content_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                APIConstants.API_KEY_HEADER: self.api_key,
                "accept": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=settings.request_timeout,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "ContentProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _send(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Send an HTTP request, retrying server and transport errors.

        Raises:
            httpx.HTTPStatusError: On a 5xx response once retries are exhausted
            httpx.RequestError: On a transport failure once retries are exhausted
            ProviderError: On a 4xx response (never retried)
        """
        response = await self.client.request(method, endpoint, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code >= 500:
                raise
            raise ProviderError(
                f"API request failed: {e.response.status_code} - {e.response.text}"
            )
        return response.json()

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments for the request

        Returns:
            Response data as dictionary

        Raises:
            ProviderError: If the request fails after retries
        """
        try:
            return await self._send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"API request failed: {e.response.status_code} - {e.response.text}"
            )
        except httpx.RequestError as e:
            raise ProviderError(f"API request error: {str(e)}")
        except ValueError as e:
            raise ProviderError(f"API returned invalid JSON: {str(e)}")

    async def _generate(self, model: str, prompt: str, **generation_config) -> GenerateContentResponse:
        body: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config
        data = await self._make_request(
            "POST",
            GenerativeAPIEndpoints.generate_content(model),
            json=body,
        )
        try:
            return GenerateContentResponse.model_validate(data)
        except ValidationError as e:
            raise ProviderError(f"Malformed generateContent response: {e}")

    async def fetch_pool(self, difficulty: Difficulty) -> List[Specimen]:
        """
        Generate a pool of tree specimens for a difficulty.

        Args:
            difficulty: Difficulty level selecting the generation criteria

        Returns:
            Non-empty list of Specimen in generation order

        Raises:
            ProviderError: If the request fails or the output is malformed
        """
        response = await self._generate(
            settings.text_model,
            tree_pool_prompt(difficulty, settings.pool_size),
            responseMimeType=APIConstants.CONTENT_TYPE_JSON,
            responseSchema=TREE_POOL_SCHEMA,
        )
        text = response.text
        if not text:
            raise ProviderError("No tree data returned")
        try:
            trees = _tree_list_adapter.validate_json(text)
        except ValidationError as e:
            logger.error(f"Failed to parse tree data: {e}")
            raise ProviderError(f"Failed to parse tree data: {e}")
        if not trees:
            raise ProviderError("Tree data contained no specimens")

        stamp = int(time.time() * 1000)
        specimens = [tree.to_specimen(f"tree-{stamp}-{index}") for index, tree in enumerate(trees)]
        logger.info(f"Generated {len(specimens)} specimens for {difficulty.value} difficulty")
        return specimens

    async def fetch_image(self, description: str, season: Season) -> str:
        """
        Generate a specimen image.

        Args:
            description: Seasonal description of the tree
            season: Season the image should depict

        Returns:
            Image handle as a base64 data URI

        Raises:
            ProviderError: If the request fails or no image is returned
        """
        response = await self._generate(
            settings.image_model,
            tree_image_prompt(description, season),
            imageConfig={"aspectRatio": settings.image_aspect_ratio},
        )
        for part in response.parts:
            if part.inline_data is not None:
                return f"data:{part.inline_data.mime_type};base64,{part.inline_data.data}"
        raise ProviderError("No image data returned")

    async def fetch_fact(self, common_name: str, scientific_name: str) -> str:
        """
        Generate a new fun fact about a species.

        Args:
            common_name: Common name of the species
            scientific_name: Scientific name of the species

        Returns:
            Fact text

        Raises:
            ProviderError: If the request fails or the text is empty
        """
        response = await self._generate(
            settings.text_model,
            fun_fact_prompt(common_name, scientific_name),
        )
        fact = response.text.strip()
        if not fact:
            raise ProviderError("No fact text returned")
        return fact


# Singleton instance
_content_provider: Optional[ContentProvider] = None


def get_content_provider() -> ContentProvider:
    """
    Get or create the singleton content provider instance.

    Returns:
        ContentProvider instance
    """
    global _content_provider
    if _content_provider is None:
        _content_provider = ContentProvider()
    return _content_provider

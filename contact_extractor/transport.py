"""
Vision API transports.

A transport sends one prompt plus images to a provider and reports the
outcome as an HTTP-style status code. Provider SDK exceptions are translated
here so the extraction client only ever reasons about status codes.
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .staging import ImagePart

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_PAYLOAD_TOO_LARGE = 413
HTTP_RATE_LIMITED = 429
HTTP_OVERLOADED = 529

# Provider status codes that mean "overloaded, try later"
_OVERLOAD_CODES = {503, HTTP_OVERLOADED}


@dataclass
class VisionResponse:
    """Status code and body text of one API call."""

    status_code: int
    text: str = ""


class RequestTimeout(Exception):
    """The API call did not complete within its timeout."""


class TransportError(Exception):
    """The API call failed below HTTP (connection refused, DNS, TLS, ...)."""


def normalize_status(code: int) -> int:
    """Fold provider-specific overload codes into 529."""
    return HTTP_OVERLOADED if code in _OVERLOAD_CODES else code


class VisionTransport(ABC):
    """
    Abstract base class for vision-capable model providers.

    Concrete implementations must not retry on their own; retry policy
    belongs to the extraction client.
    """

    @classmethod
    def create(
        cls,
        model_name: str,
        api_key: Optional[str] = None,
        max_tokens: int = 16000,
        temperature: float = 0.0,
    ) -> "VisionTransport":
        """
        Factory method to create a transport for a model.

        Args:
            model_name: Name of the model; "gemini" models use Google, others OpenAI
            api_key: API key for the provider (falls back to the environment)
            max_tokens: Maximum tokens in the response
            temperature: Temperature for generation

        Returns:
            VisionTransport instance
        """
        if "gemini" in model_name.lower():
            return GeminiTransport(model_name, api_key, max_tokens, temperature)
        return OpenAITransport(model_name, api_key, max_tokens, temperature)

    @abstractmethod
    def send(self, prompt: str, images: List[ImagePart], timeout: float) -> VisionResponse:
        """
        Send one request.

        Args:
            prompt: Instruction text
            images: Images in page order
            timeout: Timeout in seconds

        Returns:
            VisionResponse with the (normalized) status code and body text

        Raises:
            RequestTimeout: The call timed out
            TransportError: The call failed without an HTTP status
        """
        pass


class GeminiTransport(VisionTransport):
    """Google Gemini transport built on google-generativeai."""

    def __init__(
        self,
        model_name: str = "gemini-2.5-pro",
        api_key: Optional[str] = None,
        max_tokens: int = 16000,
        temperature: float = 0.0,
    ):
        self.model_name = model_name
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError(
                "API key not provided. Set it in the constructor or "
                "as GOOGLE_API_KEY environment variable."
            )
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._init_client()

    def _init_client(self):
        """Initialize Google Gemini client."""
        try:
            import google.generativeai as genai
            from google.api_core import exceptions as google_exceptions
        except ImportError:
            raise ImportError(
                "google-generativeai package not installed. "
                "Install it with: pip install google-generativeai"
            )

        genai.configure(api_key=self.api_key)
        self._errors = google_exceptions
        self.model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config={
                "max_output_tokens": self.max_tokens,
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            },
        )
        logger.info(f"Initialized Gemini transport with model: {self.model_name}")

    def send(self, prompt: str, images: List[ImagePart], timeout: float) -> VisionResponse:
        content_parts = [prompt]
        for image in images:
            content_parts.append({"mime_type": image.mime_type, "data": image.data})

        try:
            # retry=None turns off the SDK's own retry of 503s
            response = self.model.generate_content(
                content_parts,
                request_options={"timeout": timeout, "retry": None},
            )
        except (self._errors.DeadlineExceeded, self._errors.RetryError) as e:
            raise RequestTimeout(str(e)) from e
        except self._errors.GoogleAPICallError as e:
            code = int(e.code) if e.code is not None else 500
            if code == 400 and "payload size" in str(e).lower():
                # Gemini reports oversized requests as 400 INVALID_ARGUMENT
                code = HTTP_PAYLOAD_TOO_LARGE
            return VisionResponse(status_code=normalize_status(code), text=str(e))
        except OSError as e:
            raise TransportError(str(e)) from e

        try:
            text = response.text
        except ValueError as e:
            # Blocked or empty candidates; surfaces downstream as a parse error
            logger.warning(f"Gemini returned no text: {e}")
            text = ""
        return VisionResponse(status_code=HTTP_OK, text=text)


class OpenAITransport(VisionTransport):
    """OpenAI chat-completions transport."""

    def __init__(
        self,
        model_name: str = "gpt-4o",
        api_key: Optional[str] = None,
        max_tokens: int = 16000,
        temperature: float = 0.0,
    ):
        self.model_name = model_name
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError(
                "API key not provided. Set it in the constructor or "
                "as OPENAI_API_KEY environment variable."
            )
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._init_client()

    def _init_client(self):
        """Initialize OpenAI client."""
        try:
            import openai
        except ImportError:
            raise ImportError(
                "openai package not installed. "
                "Install it with: pip install openai"
            )

        self._openai = openai
        # Retries are handled by the extraction client
        self.client = openai.OpenAI(api_key=self.api_key, max_retries=0)
        logger.info(f"Initialized OpenAI transport with model: {self.model_name}")

    def send(self, prompt: str, images: List[ImagePart], timeout: float) -> VisionResponse:
        content = [{"type": "text", "text": prompt}]
        for image in images:
            content.append({
                "type": "image_url",
                "image_url": {"url": image.data_url},
            })

        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=[{"role": "user", "content": content}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=timeout,
            )
        except self._openai.APITimeoutError as e:
            raise RequestTimeout(str(e)) from e
        except self._openai.APIConnectionError as e:
            raise TransportError(str(e)) from e
        except self._openai.APIStatusError as e:
            return VisionResponse(status_code=normalize_status(e.status_code), text=str(e))

        return VisionResponse(status_code=HTTP_OK, text=response.choices[0].message.content or "")

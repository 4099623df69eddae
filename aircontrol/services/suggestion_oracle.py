import asyncio
import logging
from typing import Optional

import google.generativeai as genai

from aircontrol.config import settings
from aircontrol.services.errors import OracleError

logger = logging.getLogger(__name__)


class SuggestionOracle:
    """Anything that turns a prompt into model text"""

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError


class GeminiSuggestionOracle(SuggestionOracle):
    """
    Google Gemini backed oracle.

    One attempt per call, bounded by the configured timeout. Cancelling the
    awaiting task cancels the request.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.model_name = model_name or settings.google_model
        self.timeout = timeout or settings.oracle_timeout_seconds

    async def complete(self, prompt: str) -> str:
        if not self.api_key:
            logger.warning("Google API key not configured, rescheduling assistant is disabled")
            raise OracleError("AI assistant is not configured")

        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model_name)

        try:
            response = await asyncio.wait_for(
                model.generate_content_async(
                    prompt,
                    generation_config={"temperature": 0.2, "response_mime_type": "application/json"},
                    request_options={"timeout": self.timeout},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"AI request timed out after {self.timeout}s")
            raise OracleError("AI assistant did not answer in time")
        except asyncio.CancelledError:
            logger.info("AI request cancelled by caller")
            raise
        except Exception as e:
            logger.error(f"Error in AI processing: {e}")
            raise OracleError("AI assistant is unavailable")

        if response and response.candidates and response.candidates[0].content.parts:
            return response.candidates[0].content.parts[0].text

        logger.error("Failed to get a valid response from the AI model.")
        raise OracleError("AI assistant returned an empty response")


def get_oracle() -> SuggestionOracle:
    """FastAPI dependency; tests override it with a canned oracle"""
    return GeminiSuggestionOracle()

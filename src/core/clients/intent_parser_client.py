"""
Intent Parser Client

Turns a short command transcript into {"intent": ..., "args": {...}} using an
OpenAI chat model in JSON mode. Best effort: any failure yields an empty
result, which the engine answers with a clarification question.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from core.config import config
from core.errors.exceptions import UpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    'You transform a short command transcript into strict JSON: '
    '{"intent":"CREATE|UPDATE|MOVE_STAGE|ARCHIVE|RESTORE|COMMENT","args":{}} '
    'Stages: WISHLIST, APPLIED, INTERVIEW, OFFER, ARCHIVED. '
    'Use args keys company, position, stage, text, location when present.'
)


class IntentParser(ABC):
    """Anything that can turn a transcript into an untyped intent bag."""

    @abstractmethod
    def parse(self, transcript: str) -> Dict[str, Any]:
        pass


class IntentParserClient(IntentParser):
    """LLM-backed intent parser."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 timeout: Optional[float] = None, llm: Any = None):
        """
        Args:
            api_key: OpenAI API key. Defaults to OPENAI_API_KEY.
            model: Chat model name. Defaults to OPENAI_MODEL.
            timeout: Request timeout in seconds
            llm: Prebuilt runnable whose invoke(messages) returns the decoded JSON (tests)
        """
        self.api_key = api_key or config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else config.INTENT_PARSER_TIMEOUT
        self._llm = llm

    def _get_llm(self):
        if self._llm is None:
            from langchain_openai import ChatOpenAI
            self._llm = ChatOpenAI(
                model=self.model,
                temperature=0,
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=2,
            ).with_structured_output(method="json_mode")
        return self._llm

    def parse(self, transcript: str) -> Dict[str, Any]:
        if self._llm is None and not self.api_key:
            logger.debug("OPENAI_API_KEY not set; intent parser returns empty result")
            return {}
        try:
            return self._request(transcript)
        except UpstreamError as e:
            logger.warning(f"Intent parser failed, treating as empty parse: {e}",
                           extra={"transcript_length": len(transcript or "")})
            return {}

    def _request(self, transcript: str) -> Dict[str, Any]:
        """
        Raises:
            UpstreamError: On transport failures or unusable model output
        """
        try:
            data = self._get_llm().invoke([
                ("system", SYSTEM_PROMPT),
                ("human", transcript),
            ])
        except Exception as e:
            raise UpstreamError(f"Intent parser request failed: {str(e)}") from e

        if not isinstance(data, dict):
            raise UpstreamError(f"Intent parser returned {type(data).__name__}, expected object")
        return data

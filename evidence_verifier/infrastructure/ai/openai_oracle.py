"""OpenAI chat-completions implementation of the semantic oracle."""

import json
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field


class OpenAIOracleConfig(BaseModel):
    """Configuration for the OpenAI oracle adapter."""

    api_key: str = Field(..., description="OpenAI API key")
    model: str = Field(default="gpt-4o-mini", description="Model to use")
    base_url: str = Field(default="https://api.openai.com/v1", description="API base URL")
    temperature: float = Field(default=0.0, description="Temperature for responses")
    max_tokens: int = Field(default=1500, description="Maximum tokens per response")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")


JUDGE_PROMPT = """
You check whether a statement from a report is supported by registered claims
captured from its cited sources. Only use the candidate claims below.

Respond in JSON format with:
{
    "supported": true/false,
    "confidence": number between 0 and 1,
    "supporting_quote": "exact words copied from one candidate's supporting_quote, or null",
    "candidate_id": "claim_id of that candidate, or null",
    "reason": "Brief explanation (max 300 chars)"
}
Never paraphrase the quote. If no candidate supports the statement, set
supported to false and supporting_quote to null.
"""

EXTRACT_PROMPT = """
Extract atomic, verifiable factual claims from the source text.
Each claim must be supported by a quote copied word for word from the text.

Respond in JSON format with:
{
    "claims": [
        {
            "text": "Self-contained claim",
            "type": "statistic/fact/attribution/event/comparison",
            "numbers": [{"value": 12.5, "unit": "%", "context": "what the number measures"}],
            "entities": ["Named entities"],
            "supporting_quote": "Exact text from the source",
            "quote_location": "Paragraph or section where the quote appears"
        }
    ]
}
Do not invent numbers and do not combine facts from different passages.
"""

NUMERIC_PROMPT = """
A report states a number and cites the source text below. Compute the value
the statement refers to from the source data alone.

Respond in JSON format with:
{
    "source_data_found": true/false,
    "computed_value": number or null,
    "confidence": number between 0 and 1,
    "explanation": "How the value was computed"
}
If the source does not contain the data needed, set source_data_found to false.
"""


class OpenAIOracleAdapter:
    """Semantic oracle backed by the OpenAI chat-completions API."""

    def __init__(self, config: Optional[OpenAIOracleConfig] = None):
        """Initialize the adapter."""
        self._config = config or OpenAIOracleConfig(api_key="")
        self._client: Optional[httpx.AsyncClient] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the HTTP client and verify API access."""
        try:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._config.base_url,
                    timeout=self._config.timeout,
                    headers={
                        "Authorization": f"Bearer {self._config.api_key}",
                        "Content-Type": "application/json",
                    },
                )

            # Test connection
            response = await self._client.post(
                "/chat/completions",
                json={
                    "model": self._config.model,
                    "messages": [{"role": "system", "content": "Test connection"}],
                    "max_tokens": 5,
                },
            )
            response.raise_for_status()
            self._initialized = True
        except Exception as e:
            self._initialized = False
            if self._client:
                await self._client.aclose()
                self._client = None
            raise ConnectionError(f"Failed to initialize OpenAI oracle: {e}") from e

    async def _complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        if not self._client:
            raise RuntimeError("Oracle not initialized")

        response = await self._client.post(
            "/chat/completions",
            json={
                "model": self._config.model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": self._config.temperature,
                "max_tokens": self._config.max_tokens,
                "response_format": {"type": "json_object"},
            },
        )
        response.raise_for_status()
        return json.loads(response.json()["choices"][0]["message"]["content"])

    async def judge_support(self, statement: str, candidates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Judge whether any candidate claim supports the statement."""
        user_prompt = f"Statement: {statement}\nCandidates: {json.dumps(candidates, ensure_ascii=False)}"
        return await self._complete(JUDGE_PROMPT, user_prompt)

    async def extract_claims(self, source_id: str, text: str) -> Dict[str, Any]:
        """Extract atomic claims from source text."""
        return await self._complete(EXTRACT_PROMPT, f"Source {source_id}:\n{text}")

    async def verify_numeric(self, statement: str, claimed: Dict[str, Any], source_text: str) -> Dict[str, Any]:
        """Compute the value a numeric statement refers to from source text."""
        user_prompt = (
            f"Statement: {statement}\n"
            f"Claimed value: {json.dumps(claimed, ensure_ascii=False)}\n"
            f"Source text:\n{source_text}"
        )
        return await self._complete(NUMERIC_PROMPT, user_prompt)

    async def shutdown(self) -> None:
        """Clean up resources and shut down the oracle."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._initialized = False

    @property
    def provider_name(self) -> str:
        """Get the name of the oracle."""
        return "OpenAI"

    @property
    def is_available(self) -> bool:
        """Check if the oracle is available and ready."""
        return self._initialized and self._client is not None

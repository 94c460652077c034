import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import groq
from loguru import logger
from pydantic import BaseModel, ValidationError

# ---------------------------------------------------------
# 0. ERROS (um único tipo, discriminado por `kind`)
# ---------------------------------------------------------


class GenerationErrorKind(str, Enum):
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UPSTREAM_API_ERROR = "UPSTREAM_API_ERROR"
    RESPONSE_VALIDATION_ERROR = "RESPONSE_VALIDATION_ERROR"


class GenerationError(Exception):
    def __init__(
        self,
        kind: GenerationErrorKind,
        message: str,
        retry_after: Optional[int] = None,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retry_after = retry_after
        self.upstream_status = upstream_status


# ---------------------------------------------------------
# 1. FORMATO ESPERADO DO MODELO
# ---------------------------------------------------------


class _ProposalPayload(BaseModel):
    front_text: str
    back_text: str


class _ProposalsPayload(BaseModel):
    proposals: List[_ProposalPayload]


@dataclass
class Proposal:
    temporary_id: uuid.UUID
    front_text: str
    back_text: str


@dataclass
class GenerationResult:
    proposals: List[Proposal]
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    time_taken: float = 0.0


SYSTEM_PROMPT = """
You are an experienced educator who writes study flashcards.
Read the source text provided by the user and create between 15 and 25 flashcards
covering its most important facts, definitions and relationships.

Rules:
- One idea per card. The front is a precise question, the back a concise answer.
- Each front_text and back_text must be at most 500 characters.
- Write the cards in the same language as the source text.
- Do not invent facts that are not supported by the text.

Output strictly VALID JSON, nothing else, using exactly this schema:
{ "proposals": [ { "front_text": "...", "back_text": "..." } ] }
If the text has no usable educational content, output { "proposals": [] }.
"""


def build_messages(input_text: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT.strip()},
        {"role": "user", "content": input_text},
    ]


def parse_proposals(content: Optional[str]) -> List[Proposal]:
    """Converte o JSON do modelo em propostas, cada uma com temporary_id novo."""
    if not content:
        raise GenerationError(GenerationErrorKind.RESPONSE_VALIDATION_ERROR, "Empty response from model")
    try:
        payload = _ProposalsPayload.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as e:
        raise GenerationError(
            GenerationErrorKind.RESPONSE_VALIDATION_ERROR, f"Model response does not match the schema: {e}"
        )

    return [
        Proposal(temporary_id=uuid.uuid4(), front_text=p.front_text, back_text=p.back_text)
        for p in payload.proposals
    ]


def _retry_after_seconds(error: groq.APIStatusError) -> Optional[int]:
    value = error.response.headers.get("retry-after") if error.response is not None else None
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


# ---------------------------------------------------------
# 2. O GERADOR (retry sequencial e limitado)
# ---------------------------------------------------------


class ProposalGenerator:
    def __init__(
        self,
        client: Any,
        model: str,
        timeout: float = 60.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        return self.retry_delay * (2 ** (attempt - 1))

    async def generate(self, input_text: str, model: Optional[str] = None) -> GenerationResult:
        if self.client is None:
            raise GenerationError(GenerationErrorKind.CONFIGURATION_ERROR, "LLM provider API key is not configured")

        target_model = model or self.model
        messages = build_messages(input_text)
        max_attempts = self.max_retries + 1
        start_time = time.time()

        for attempt in range(1, max_attempts + 1):
            last_attempt = attempt == max_attempts
            try:
                completion = await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=target_model,
                        messages=messages,
                        response_format={"type": "json_object"},
                        temperature=0.3,
                        timeout=self.timeout,
                    ),
                    timeout=self.timeout,
                )
                break

            # APITimeoutError herda de APIConnectionError: precisa vir antes
            except (asyncio.TimeoutError, groq.APITimeoutError):
                logger.error(f"⏱️ Timeout de {self.timeout}s no {target_model}")
                raise GenerationError(
                    GenerationErrorKind.TIMEOUT_ERROR, f"Request timeout after {self.timeout} seconds"
                )

            except groq.APIConnectionError as e:
                if last_attempt:
                    logger.error(f"❌ Falha de rede no {target_model} após {attempt} tentativas: {e}")
                    raise GenerationError(GenerationErrorKind.NETWORK_ERROR, "Network request to LLM provider failed")
                delay = self.backoff(attempt)
                logger.warning(f"⚠️ Falha de rede no {target_model}: {e}. Nova tentativa em {delay}s...")
                await self._sleep(delay)

            except groq.RateLimitError as e:
                retry_after = _retry_after_seconds(e)
                if last_attempt:
                    logger.error(f"❌ Rate limit persistente no {target_model}")
                    raise GenerationError(
                        GenerationErrorKind.RATE_LIMIT_ERROR, "LLM provider rate limit exceeded", retry_after=retry_after
                    )
                delay = retry_after if retry_after is not None else self.backoff(attempt)
                logger.warning(f"⏳ Rate limit no {target_model}. Esperando {delay}s antes de tentar de novo...")
                await self._sleep(delay)

            except groq.APIStatusError as e:
                if e.status_code >= 500 and not last_attempt:
                    delay = self.backoff(attempt)
                    logger.warning(f"⚠️ Erro {e.status_code} no {target_model}. Nova tentativa em {delay}s...")
                    await self._sleep(delay)
                    continue
                logger.error(f"❌ Erro {e.status_code} do provedor no {target_model}: {e.message}")
                raise GenerationError(
                    GenerationErrorKind.UPSTREAM_API_ERROR,
                    f"LLM provider request failed with status {e.status_code}",
                    upstream_status=e.status_code,
                )

        if not completion.choices or completion.choices[0].message is None:
            raise GenerationError(GenerationErrorKind.RESPONSE_VALIDATION_ERROR, "Invalid response: no message returned")

        proposals = parse_proposals(completion.choices[0].message.content)

        usage: Dict[str, int] = {}
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }

        logger.info(f"🧠 [Gerador] {len(proposals)} propostas com {target_model}")
        return GenerationResult(
            proposals=proposals,
            model=target_model,
            usage=usage,
            time_taken=time.time() - start_time,
        )

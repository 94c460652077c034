from typing import Optional

from groq import AsyncGroq
from loguru import logger

from tenx_cards.utils.config import Settings


def build_client(settings: Settings) -> Optional[AsyncGroq]:
    """
    Cliente assíncrono da Groq, ou None quando não há chave configurada.
    O retry fica por conta do ProposalGenerator, então o do SDK é desligado.
    """
    if not settings.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY ausente: geração de flashcards vai responder CONFIGURATION_ERROR")
        return None

    return AsyncGroq(
        api_key=settings.GROQ_API_KEY,
        timeout=settings.GENERATION_TIMEOUT,
        max_retries=0,
    )

from dataclasses import dataclass
from typing import Dict

from loguru import logger

from tenx_cards.utils.config import Settings


@dataclass(frozen=True)
class FeatureFlags:
    auth: bool = False
    ai_generation: bool = False


# Configuração estática por ambiente de deploy
ENVIRONMENT_FLAGS: Dict[str, FeatureFlags] = {
    "local": FeatureFlags(auth=True, ai_generation=True),
    "integration": FeatureFlags(auth=True, ai_generation=False),
    "production": FeatureFlags(auth=True, ai_generation=False),
}


def resolve_feature_flags(settings: Settings) -> FeatureFlags:
    """
    Resolve as flags uma única vez no startup.
    Ambiente inválido desliga tudo; FEATURE_* sobrescreve o padrão do ambiente.
    """
    base = ENVIRONMENT_FLAGS.get(settings.ENV_NAME)
    if base is None:
        logger.warning(f"ENV_NAME inválido ou ausente: '{settings.ENV_NAME}'. Todas as features desligadas.")
        base = FeatureFlags()

    return FeatureFlags(
        auth=base.auth if settings.FEATURE_AUTH is None else settings.FEATURE_AUTH,
        ai_generation=(
            base.ai_generation if settings.FEATURE_AI_GENERATION is None else settings.FEATURE_AI_GENERATION
        ),
    )

from fastapi import Request

from tenx_cards.services.proposal_generator import ProposalGenerator
from tenx_cards.utils.config import Settings
from tenx_cards.utils.feature_flags import FeatureFlags


# Resolvidos uma vez em create_app e guardados em app.state
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_feature_flags(request: Request) -> FeatureFlags:
    return request.app.state.feature_flags


def get_generator(request: Request) -> ProposalGenerator:
    return request.app.state.generator

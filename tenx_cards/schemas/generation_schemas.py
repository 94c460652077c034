import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, StringConstraints

# Texto de origem: validado depois do trim
InputText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1000, max_length=32768)]


# Input
class GenerationSessionCreateRequest(BaseModel):
    input_text: InputText
    model_identifier: Optional[str] = None
    client_request_id: Optional[uuid.UUID] = None


# Proposta efêmera: nunca persistida sozinha
class ProposalResponse(BaseModel):
    temporary_id: uuid.UUID
    front_text: str
    back_text: str


class GenerationSessionResponse(BaseModel):
    id: uuid.UUID
    client_request_id: uuid.UUID
    model_identifier: str
    generation_started_at: datetime


# Output
class GenerationSessionCreateResponse(BaseModel):
    session: GenerationSessionResponse
    proposals: List[ProposalResponse]

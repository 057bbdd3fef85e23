import uuid
from typing import Annotated
from pydantic import BaseModel, Field, ConfigDict, BeforeValidator

# Document keys are stored as plain strings (uuid4 for relay messages)
DocumentId = Annotated[str, BeforeValidator(str)]


def new_document_id() -> str:
    return str(uuid.uuid4())


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra='forbid'
    )

    # Assigned at creation, never reassigned
    id: DocumentId = Field(default_factory=new_document_id, alias="_id", frozen=True)

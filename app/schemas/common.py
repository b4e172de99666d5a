from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

from app.core.ids import ID_PATTERN

# Identifier shape shared by listings, categories and users
EntityId = Annotated[str, StringConstraints(pattern=ID_PATTERN)]


class CamelModel(BaseModel):
    """
    Base for wire models: snake_case attributes, camelCase JSON.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

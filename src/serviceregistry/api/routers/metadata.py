from typing import List, Annotated

from fastapi import APIRouter, Depends

from serviceregistry.connections import schemas
from serviceregistry.metadata.definitions import MetadataDefinitionCatalog
from serviceregistry.api.dependencies import get_metadata_catalog


router = APIRouter()

@router.get("/definitions", response_model=List[schemas.MetadataDefinitionResponse])
def list_definitions(
    catalog: Annotated[MetadataDefinitionCatalog, Depends(get_metadata_catalog)],
):
    """
    Every metadata key an editor may set, with its default and typing hints.
    """
    return [
        schemas.MetadataDefinitionResponse(
            key=definition.key,
            type=definition.type,
            default=definition.default,
            required=definition.required,
            supported=list(definition.supported),
            select_values=list(definition.select_values),
            description=definition.description,
        )
        for definition in catalog
    ]

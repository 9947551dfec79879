from fastapi import APIRouter, Depends

from app.dependencies import get_catalog
from app.repositories.records import ResourceRecord
from app.schemas.resource import ResourceResponse, UpdateResourceRequest
from app.security import require_policy
from app.services.authorization import DEVELOPER_POLICY, Principal
from app.services.catalog import CatalogManager, ResourceEntry

router = APIRouter()


def build_resource_response(resource: ResourceRecord) -> ResourceResponse:
    return ResourceResponse(
        resource_id=resource.id,
        name=resource.name,
        code=resource.code,
        type=resource.type,
        price_buy=resource.price_buy,
        price_sell=resource.price_sell,
        last_updated=resource.last_updated,
    )


@router.get("", response_model=list[ResourceResponse])
async def list_resources(catalog: CatalogManager = Depends(get_catalog)):
    return [build_resource_response(r) for r in await catalog.list_resources()]


@router.post("", response_model=list[ResourceResponse])
async def update_resources(
    data: list[UpdateResourceRequest],
    principal: Principal = Depends(require_policy(DEVELOPER_POLICY)),
    catalog: CatalogManager = Depends(get_catalog),
):
    """Upsert catalog entries by code and return the full catalog."""
    entries = [
        ResourceEntry(
            name=r.name,
            code=r.code,
            type=r.type,
            price_buy=r.price_buy,
            price_sell=r.price_sell,
        )
        for r in data
    ]
    return [build_resource_response(r) for r in await catalog.upsert_resources(entries)]


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource(resource_id: int, catalog: CatalogManager = Depends(get_catalog)):
    return build_resource_response(await catalog.get_resource(resource_id))

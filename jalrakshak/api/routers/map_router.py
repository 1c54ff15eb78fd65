from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jalrakshak.adapters.geocoder import GeocoderError
from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.domain.models import (
    GeocodeResultRead,
    MapLayerName,
    MapLayerRead,
    NetworkAssetCreate,
    NetworkAssetRead,
    NetworkAssetType,
)
from jalrakshak.domain.permissions import PERM_MAP_READ, PERM_MAP_WRITE
from jalrakshak.services.map_service import MapService, NotFoundError, ValidationError

router = APIRouter()


def get_map_service() -> MapService:
    return MapService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[MapService, Depends(get_map_service)]


def _handle_map_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(exc, GeocoderError):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    raise exc


@router.post(
    "/assets",
    response_model=NetworkAssetRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_MAP_WRITE))],
)
def register_asset(payload: NetworkAssetCreate, claims: Claims, service: Service) -> NetworkAssetRead:
    row = service.register_asset(claims["utility_id"], payload, claims["sub"])
    return NetworkAssetRead.model_validate(row)


@router.get(
    "/assets",
    response_model=list[NetworkAssetRead],
    dependencies=[Depends(require_perm(PERM_MAP_READ))],
)
def list_assets(
    claims: Claims,
    service: Service,
    asset_type: NetworkAssetType | None = None,
) -> list[NetworkAssetRead]:
    rows = service.list_assets(claims["utility_id"], asset_type=asset_type)
    return [NetworkAssetRead.model_validate(item) for item in rows]


@router.get(
    "/layers/{layer}",
    response_model=MapLayerRead,
    dependencies=[Depends(require_perm(PERM_MAP_READ))],
)
def get_layer(layer: MapLayerName, claims: Claims, service: Service) -> MapLayerRead:
    return service.layer(claims["utility_id"], layer)


@router.get(
    "/geocode",
    response_model=list[GeocodeResultRead],
    dependencies=[Depends(require_perm(PERM_MAP_READ))],
)
def geocode(service: Service, q: str = Query(min_length=1)) -> list[GeocodeResultRead]:
    try:
        return service.geocode(q)
    except (NotFoundError, ValidationError, GeocoderError) as exc:
        _handle_map_error(exc)
        raise


@router.get(
    "/reverse-geocode",
    response_model=GeocodeResultRead,
    dependencies=[Depends(require_perm(PERM_MAP_READ))],
)
def reverse_geocode(
    service: Service,
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
) -> GeocodeResultRead:
    try:
        return service.reverse_geocode(lat, lon)
    except (NotFoundError, GeocoderError) as exc:
        _handle_map_error(exc)
        raise

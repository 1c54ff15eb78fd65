from __future__ import annotations

import re

from sqlmodel import Session, col, select

from jalrakshak.adapters.geocoder import GeocoderClient
from jalrakshak.domain.models import (
    Alert,
    Complaint,
    GeocodeResultRead,
    MapItemRead,
    MapLayerName,
    MapLayerRead,
    MapPointRead,
    NetworkAsset,
    NetworkAssetCreate,
    NetworkAssetType,
)
from jalrakshak.domain.state_machine import ComplaintStatus
from jalrakshak.infra.db import get_engine
from jalrakshak.infra.events import event_log

_NUMBER = r"[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?"
POINT_WKT_PATTERN = re.compile(rf"^POINT\s*\(\s*({_NUMBER})\s+({_NUMBER})\s*\)$", re.IGNORECASE)

INFRASTRUCTURE_TYPES = {NetworkAssetType.TANK, NetworkAssetType.PUMP}
ISSUE_ASSET_STATUSES = {"warning", "critical"}


class MapError(Exception):
    pass


class NotFoundError(MapError):
    pass


class ValidationError(MapError):
    pass


def parse_point_wkt(value: str | None) -> MapPointRead | None:
    if value is None:
        return None
    match = POINT_WKT_PATTERN.match(value.strip())
    if match is None:
        return None
    lon, lat = float(match.group(1)), float(match.group(2))
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return MapPointRead(lat=lat, lon=lon)


def _asset_item(asset: NetworkAsset) -> MapItemRead:
    return MapItemRead(
        id=asset.id,
        category=NetworkAssetType(asset.asset_type).value,
        label=asset.name,
        status=asset.status,
        point=MapPointRead(lat=asset.lat, lon=asset.lon),
        detail=dict(asset.detail),
    )


def _complaint_item(complaint: Complaint, point: MapPointRead) -> MapItemRead:
    return MapItemRead(
        id=complaint.id,
        category="complaint",
        label=complaint.description[:80],
        status=ComplaintStatus(complaint.status).value,
        point=point,
        detail={
            "location": complaint.location,
            "priority": complaint.priority,
            "category": complaint.category,
            "gps_accuracy": complaint.gps_accuracy,
        },
    )


def _alert_item(alert: Alert) -> MapItemRead:
    return MapItemRead(
        id=alert.id,
        category="alert",
        label=alert.title,
        status=alert.alert_type,
        point=None,
        detail={
            "location": alert.location,
            "sensor_id": alert.sensor_id,
            "current_value": alert.current_value,
            "severity_score": alert.severity_score,
        },
    )


class MapService:
    def __init__(self, *, geocoder: GeocoderClient | None = None) -> None:
        self._geocoder = geocoder

    @property
    def geocoder(self) -> GeocoderClient:
        if self._geocoder is None:
            self._geocoder = GeocoderClient()
        return self._geocoder

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def register_asset(self, utility_id: str, payload: NetworkAssetCreate, actor_id: str | None = None) -> NetworkAsset:
        with self._session() as session:
            asset = NetworkAsset(
                utility_id=utility_id,
                name=payload.name,
                asset_type=payload.asset_type,
                status=payload.status,
                lat=payload.lat,
                lon=payload.lon,
                detail=dict(payload.detail),
            )
            session.add(asset)
            session.commit()
            session.refresh(asset)

        event_log.record(
            "map.asset_registered",
            utility_id,
            {"asset_id": asset.id, "asset_type": asset.asset_type},
            actor_id=actor_id,
        )
        return asset

    def list_assets(self, utility_id: str, *, asset_type: NetworkAssetType | None = None) -> list[NetworkAsset]:
        with self._session() as session:
            statement = select(NetworkAsset).where(NetworkAsset.utility_id == utility_id)
            if asset_type is not None:
                statement = statement.where(NetworkAsset.asset_type == asset_type)
            statement = statement.order_by(col(NetworkAsset.created_at).asc())
            return list(session.exec(statement).all())

    def _collect_layers(self, utility_id: str) -> dict[MapLayerName, list[MapItemRead]]:
        with self._session() as session:
            assets = list(session.exec(select(NetworkAsset).where(NetworkAsset.utility_id == utility_id)).all())
            complaints = list(
                session.exec(
                    select(Complaint)
                    .where(Complaint.utility_id == utility_id)
                    .where(Complaint.status != ComplaintStatus.RESOLVED)
                    .where(col(Complaint.gps_coordinates).is_not(None))
                ).all()
            )
            alerts = list(
                session.exec(
                    select(Alert)
                    .where(Alert.utility_id == utility_id)
                    .where(Alert.resolved == False)  # noqa: E712
                    .order_by(col(Alert.timestamp).desc())
                ).all()
            )

        infrastructure: list[MapItemRead] = []
        households: list[MapItemRead] = []
        sensors: list[MapItemRead] = []
        issues: list[MapItemRead] = []
        for asset in assets:
            item = _asset_item(asset)
            asset_type = NetworkAssetType(asset.asset_type)
            if asset_type in INFRASTRUCTURE_TYPES:
                infrastructure.append(item)
            elif asset_type == NetworkAssetType.HOUSEHOLD:
                households.append(item)
            elif asset_type == NetworkAssetType.SENSOR:
                sensors.append(item)
            if asset_type == NetworkAssetType.LEAK or asset.status in ISSUE_ASSET_STATUSES:
                issues.append(item)
        for complaint in complaints:
            point = parse_point_wkt(complaint.gps_coordinates)
            if point is not None:
                issues.append(_complaint_item(complaint, point))
        issues.extend(_alert_item(alert) for alert in alerts)

        # An asset can sit in a base layer and in issues; "all" lists it once.
        combined: dict[str, MapItemRead] = {}
        for item in [*infrastructure, *households, *sensors, *issues]:
            combined.setdefault(f"{item.category}:{item.id}", item)
        return {
            MapLayerName.ALL: list(combined.values()),
            MapLayerName.INFRASTRUCTURE: infrastructure,
            MapLayerName.HOUSEHOLDS: households,
            MapLayerName.SENSORS: sensors,
            MapLayerName.ISSUES: issues,
        }

    def layer(self, utility_id: str, layer: MapLayerName = MapLayerName.ALL) -> MapLayerRead:
        layers = self._collect_layers(utility_id)
        items = layers[layer]
        return MapLayerRead(
            layer=layer,
            total=len(items),
            counts={name.value: len(values) for name, values in layers.items()},
            items=items,
        )

    def geocode(self, query: str) -> list[GeocodeResultRead]:
        query = query.strip()
        if not query:
            raise ValidationError("search query must not be blank")
        return self.geocoder.search(query)

    def reverse_geocode(self, lat: float, lon: float) -> GeocodeResultRead:
        result = self.geocoder.reverse(lat, lon)
        if result is None:
            raise NotFoundError("no address found for coordinates")
        return result

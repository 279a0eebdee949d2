"""Build the bundled default dataset from a seed file.

A seed file is a list of layers whose ``entities`` are OSM lookup ids
(``"R62422"``) or free-text queries. Each entity is resolved through the
gateway, one request at a time, and the result is written as a full
``{layers, groups}`` document.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from highlighter.errors import NetworkError, NotFoundError
from highlighter.geocode.gateway import GeocodeGateway
from highlighter.layers.entities import EntityCandidate, build_feature
from highlighter.layers.identity import FeatureSource
from highlighter.layers.layer import Layer
from highlighter.state import WorkspaceState


def _entity_query(entity) -> str:
    if isinstance(entity, str):
        return entity
    return str(entity.get("id") or entity.get("name") or "")


async def build_default_dataset(
    seed: list[dict],
    gateway: GeocodeGateway,
    delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> dict:
    """Resolve every seed entity and return the ``{layers, groups}`` document.

    Entities that cannot be resolved are skipped with a warning.
    """
    layers = []
    first = True
    for raw in seed:
        seed_layer = {k: v for k, v in raw.items() if k != "entities"}
        layer = Layer.from_dict(seed_layer)
        features = []
        for entity in raw.get("entities") or []:
            query = _entity_query(entity)
            if not query:
                continue
            if not first:
                await sleep(delay)
            first = False
            try:
                result = await gateway.resolve(query)
            except (NotFoundError, NetworkError) as e:
                logger.warning(f"No geometry for {query}: {e}")
                continue
            name = entity.get("name") if isinstance(entity, dict) else None
            feature = build_feature(EntityCandidate(
                source=FeatureSource.OSM,
                name=name or result.properties.get("name") or result.properties.get("display_name") or query,
                geometry=result.geometry,
                osm_type=result.osm_type,
                osm_id=result.osm_id,
            ))
            features.append(feature.to_dict())
        data = layer.to_dict()
        data["featureCollection"]["features"] = features
        layers.append(data)
        logger.info(f"Layer {layer.name!r}: {len(features)} features")
    return WorkspaceState.from_dicts(layers, None).to_dicts()

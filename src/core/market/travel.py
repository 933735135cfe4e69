"""Travel cost between boroughs — action points + fare"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from src.core.errors import RouteNotFoundError, ValidationError

from .models import BoroughDistance, TransportMethod

logger = logging.getLogger(__name__)

# Action cost when the distance table has no time for the mode
DEFAULT_TIMES: dict[str, int] = {
    "walk": 3,
    "bike": 2,
    "subway": 2,
    "taxi": 1,
}
FALLBACK_TIME = 1


@dataclass(frozen=True)
class TravelCost:
    action_cost: int
    monetary_cost: Decimal


def transport_kind(transport: TransportMethod) -> Optional[str]:
    """Map a transport name to walk|bike|subway|taxi, None when unknown."""
    name = transport.name.lower()
    for kind in DEFAULT_TIMES:
        if kind in name:
            return kind
    return None


def find_distance(
    distances: Iterable[BoroughDistance], from_id: str, to_id: str
) -> Optional[BoroughDistance]:
    for distance in distances:
        if distance.connects(from_id, to_id):
            return distance
    return None


def calculate_travel_cost(
    distance: BoroughDistance, transport: TransportMethod
) -> TravelCost:
    kind = transport_kind(transport)
    fare = transport.base_cost

    if kind is None:
        return TravelCost(action_cost=FALLBACK_TIME, monetary_cost=fare)

    time = getattr(distance, f"{'walking' if kind == 'walk' else kind}_time")
    if not time:
        time = DEFAULT_TIMES[kind]

    if kind == "taxi" and distance.taxi_cost:
        fare = distance.taxi_cost

    return TravelCost(action_cost=int(time), monetary_cost=fare)


def plan_route(
    distances: Iterable[BoroughDistance],
    from_id: Optional[str],
    to_id: str,
    transport: TransportMethod,
) -> TravelCost:
    if from_id is None:
        raise ValidationError("Player has no current borough")
    if from_id == to_id:
        raise ValidationError("Already in that borough", {"borough_id": to_id})
    distance = find_distance(distances, from_id, to_id)
    if distance is None:
        raise RouteNotFoundError(
            f"No route from {from_id} to {to_id}",
            {"from": from_id, "to": to_id},
        )
    return calculate_travel_cost(distance, transport)

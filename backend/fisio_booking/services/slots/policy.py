# backend/fisio_booking/services/slots/policy.py
"""
Per-service-type rules: rest buffer and physical space.
"""

from dataclasses import dataclass


# Idle minutes appended after a service before its resource is free again
REST_TIME_MINUTES = {
    "hidroterapia": 15,  # drying the dog
    "hidroterapia_rehabilitacion": 0,
    "rehabilitacion": 0,
    "rehabilitacion_domicilio": 0,
}

REHAB_CABIN_ID = 1
POOL_ID = 2
CLIENT_HOME_ID = 3


@dataclass(frozen=True)
class SpaceInfo:
    space_id: int
    display: str


_SPACES = {
    "rehabilitacion": SpaceInfo(REHAB_CABIN_ID, "Rehabilitation cabin"),
    "hidroterapia": SpaceInfo(POOL_ID, "Pool (hydrotherapy)"),
    "hidroterapia_rehabilitacion": SpaceInfo(
        REHAB_CABIN_ID, "Rehabilitation cabin + Pool (hydrotherapy)"
    ),
    "rehabilitacion_domicilio": SpaceInfo(CLIENT_HOME_ID, "Client home"),
}


def rest_time_minutes(service_type: str | None) -> int:
    """Buffer after a service of this type. Unknown types get 0."""
    return REST_TIME_MINUTES.get(service_type or "", 0)


def space_for_service(service_type: str | None) -> SpaceInfo:
    return _SPACES.get(service_type or "", SpaceInfo(REHAB_CABIN_ID, "General space"))

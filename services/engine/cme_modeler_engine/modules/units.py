from __future__ import annotations

AU_KM = 149_597_870.7
SECONDS_PER_HOUR = 3600.0
DEFAULT_SCENE_SCALE = 3.0


def km_to_au(distance_km: float) -> float:
    return distance_km / AU_KM


def km_to_scene(distance_km: float, scene_scale: float = DEFAULT_SCENE_SCALE) -> float:
    return km_to_au(distance_km) * scene_scale

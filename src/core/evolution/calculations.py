"""관계 수치 계산 (순수 함수)"""

from typing import Mapping, Optional

from src.core.evolution.models import DIMENSION_DEFAULTS, RelationshipDimension


def clamp_dimension(value: float) -> float:
    """0 ~ 1 클램프."""
    return max(0.0, min(1.0, value))


def apply_change(current: float, change: float) -> float:
    """현재 값 + delta 후 클램프."""
    return clamp_dimension(current + change)


def rederive_value(
    current: float, old_value: Optional[float], new_value: float
) -> float:
    """제안 당시 delta(new - old)를 현재 값에 다시 적용.

    old_value가 없으면 new_value를 그대로 클램프한다.
    """
    if old_value is None:
        return clamp_dimension(new_value)
    return apply_change(current, new_value - old_value)


def merge_dimensions(
    current: Mapping[str, float], updates: Mapping[str, float]
) -> dict:
    """현재 6축 값 위에 부분 갱신 병합. 모든 축을 클램프해서 반환."""
    merged = {}
    for dim in RelationshipDimension:
        value = updates.get(dim.value)
        if value is None:
            value = current.get(dim.value, DIMENSION_DEFAULTS[dim])
        merged[dim.value] = clamp_dimension(float(value))
    return merged

"""관계 라벨 계산

6축 수치 → 주 라벨 1개 + 보조 라벨 + 요약 문장.
주 라벨 규칙은 위에서 아래로 평가, 첫 매치 반환 (구간이 겹치므로 순서가 의미를 가진다).
어느 규칙에도 맞지 않으면 원형 벡터 최근접 라벨.
절대 임계값으로 정의된 라벨(terrified, enemy)은 최근접 후보에서 뺀다.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from src.core.evolution.models import Relationship


class RelationshipLabel(str, Enum):
    # 주 라벨
    TERRIFIED = "terrified"
    ENEMY = "enemy"
    DEVOTED = "devoted"
    HOSTILE = "hostile"
    RIVAL = "rival"
    RESENTFUL = "resentful"
    ALLIED = "allied"
    FRIENDLY = "friendly"
    WARY = "wary"
    INDIFFERENT = "indifferent"
    # 보조 라벨
    TRUSTED = "trusted"
    RESPECTED = "respected"
    BELOVED = "beloved"
    RESENTED = "resented"
    FEARED = "feared"
    INDEBTED = "indebted"


class LabelValence(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass
class LabelScore:
    label: RelationshipLabel
    intensity: float  # 0.0 ~ 1.0


@dataclass
class ComputedLabels:
    primary: RelationshipLabel
    labels: List[LabelScore]  # primary 먼저, 이후 보조 라벨
    summary: str


Check = Callable[[Relationship], bool]
Intensity = Callable[[Relationship], float]

TERRIFIED_CUTOFF = 0.7
NEUTRAL_BAND = (0.45, 0.55)
NEAR_ZERO = 0.1


def _above(value: float, threshold: float) -> float:
    """threshold 이상 구간을 0.2 ~ 1.0 강도로 정규화."""
    if threshold >= 1.0:
        return 1.0
    return min(1.0, 0.2 + 0.8 * max(0.0, value - threshold) / (1.0 - threshold))


def _is_indifferent(r: Relationship) -> bool:
    low, high = NEUTRAL_BAND
    return (
        all(low <= v <= high for v in (r.trust, r.respect, r.affection))
        and r.fear <= NEAR_ZERO
        and r.resentment <= NEAR_ZERO
    )


def _indifference(r: Relationship) -> float:
    deviation = max(
        abs(r.trust - 0.5),
        abs(r.respect - 0.5),
        abs(r.affection - 0.5),
        r.fear,
        r.resentment,
    )
    return max(0.0, 1.0 - deviation / 0.15)


# ── 주 라벨 우선순위 표 ──────────────────────────────────────
# (label, 조건, 강도)
PRIMARY_RULES: List[Tuple[RelationshipLabel, Check, Intensity]] = [
    (
        RelationshipLabel.TERRIFIED,
        lambda r: r.fear > TERRIFIED_CUTOFF,
        lambda r: _above(r.fear, TERRIFIED_CUTOFF),
    ),
    (
        RelationshipLabel.ENEMY,
        lambda r: r.fear > 0.5 and r.resentment > 0.6,
        lambda r: (_above(r.fear, 0.5) + _above(r.resentment, 0.6)) / 2,
    ),
    (
        RelationshipLabel.DEVOTED,
        lambda r: r.trust >= 0.8 and r.respect >= 0.8 and r.affection >= 0.8,
        lambda r: (
            _above(r.trust, 0.8) + _above(r.respect, 0.8) + _above(r.affection, 0.8)
        )
        / 3,
    ),
    (
        RelationshipLabel.HOSTILE,
        lambda r: r.resentment >= 0.8 and r.trust <= 0.2,
        lambda r: _above(r.resentment, 0.8),
    ),
    (
        RelationshipLabel.RIVAL,
        lambda r: r.respect >= 0.6 and r.resentment >= 0.4 and 0.2 < r.trust < 0.75,
        lambda r: (_above(r.respect, 0.6) + _above(r.resentment, 0.4)) / 2,
    ),
    (
        RelationshipLabel.RESENTFUL,
        lambda r: r.resentment >= 0.6,
        lambda r: _above(r.resentment, 0.6),
    ),
    (
        RelationshipLabel.ALLIED,
        lambda r: r.trust >= 0.75 and r.respect >= 0.75,
        lambda r: (_above(r.trust, 0.75) + _above(r.respect, 0.75)) / 2,
    ),
    (
        RelationshipLabel.FRIENDLY,
        lambda r: r.trust >= 0.6 and r.affection >= 0.55,
        lambda r: (_above(r.trust, 0.6) + _above(r.affection, 0.55)) / 2,
    ),
    (
        RelationshipLabel.WARY,
        lambda r: r.trust <= 0.4 and 0.25 <= r.fear <= TERRIFIED_CUTOFF,
        lambda r: min(1.0, r.fear * (1.0 - r.trust) * 2),
    ),
    (
        RelationshipLabel.INDIFFERENT,
        _is_indifferent,
        _indifference,
    ),
]

# ── 보조 라벨 (주 라벨과 무관하게 임계값만 보고 추가) ───────
SECONDARY_RULES: List[Tuple[RelationshipLabel, Check, Intensity]] = [
    (RelationshipLabel.TRUSTED, lambda r: r.trust >= 0.8, lambda r: _above(r.trust, 0.8)),
    (RelationshipLabel.RESPECTED, lambda r: r.respect >= 0.8, lambda r: _above(r.respect, 0.8)),
    (RelationshipLabel.BELOVED, lambda r: r.affection >= 0.85, lambda r: _above(r.affection, 0.85)),
    (RelationshipLabel.RESENTED, lambda r: r.resentment >= 0.6, lambda r: _above(r.resentment, 0.6)),
    (
        RelationshipLabel.FEARED,
        lambda r: 0.55 <= r.fear <= TERRIFIED_CUTOFF,
        lambda r: _above(r.fear, 0.55),
    ),
    (RelationshipLabel.INDEBTED, lambda r: r.debt >= 0.6, lambda r: _above(r.debt, 0.6)),
]

# ── 최근접 판정용 원형 벡터 (trust, respect, affection, fear, resentment) ──
# 우선순위 순서. 거리 동률이면 indifferent.
LABEL_PROTOTYPES: Dict[RelationshipLabel, Tuple[float, float, float, float, float]] = {
    RelationshipLabel.TERRIFIED: (0.3, 0.4, 0.3, 0.85, 0.3),
    RelationshipLabel.ENEMY: (0.2, 0.3, 0.2, 0.6, 0.7),
    RelationshipLabel.DEVOTED: (0.9, 0.9, 0.9, 0.0, 0.0),
    RelationshipLabel.HOSTILE: (0.1, 0.3, 0.2, 0.1, 0.9),
    RelationshipLabel.RIVAL: (0.5, 0.7, 0.4, 0.1, 0.5),
    RelationshipLabel.RESENTFUL: (0.4, 0.5, 0.4, 0.1, 0.7),
    RelationshipLabel.ALLIED: (0.8, 0.8, 0.5, 0.0, 0.0),
    RelationshipLabel.FRIENDLY: (0.7, 0.5, 0.7, 0.0, 0.0),
    RelationshipLabel.WARY: (0.3, 0.5, 0.4, 0.4, 0.1),
    RelationshipLabel.INDIFFERENT: (0.5, 0.5, 0.5, 0.0, 0.0),
}

# 규칙 조건이 참일 때만 붙는 라벨. fallback 후보 아님
FALLBACK_EXCLUDED = frozenset({RelationshipLabel.TERRIFIED, RelationshipLabel.ENEMY})

SUMMARIES: Dict[RelationshipLabel, str] = {
    RelationshipLabel.TERRIFIED: "Absolutely terrified",
    RelationshipLabel.ENEMY: "A feared and hated enemy",
    RelationshipLabel.DEVOTED: "Deeply devoted and loyal",
    RelationshipLabel.HOSTILE: "Openly hostile",
    RelationshipLabel.RIVAL: "A competitive rival",
    RelationshipLabel.RESENTFUL: "Harbors resentment",
    RelationshipLabel.ALLIED: "A trusted ally",
    RelationshipLabel.FRIENDLY: "On friendly terms",
    RelationshipLabel.WARY: "Cautious and wary",
    RelationshipLabel.INDIFFERENT: "No strong feelings either way",
}

# (primary, 보조 라벨) 조합 요약
COMBINED_SUMMARIES: Dict[Tuple[RelationshipLabel, RelationshipLabel], str] = {
    (RelationshipLabel.ALLIED, RelationshipLabel.RESPECTED): "A respected ally",
    (RelationshipLabel.FRIENDLY, RelationshipLabel.TRUSTED): "A trusted friend",
    (RelationshipLabel.RIVAL, RelationshipLabel.RESPECTED): "A respected rival",
    (RelationshipLabel.TERRIFIED, RelationshipLabel.RESENTED): "Terrified but resentful",
    (RelationshipLabel.HOSTILE, RelationshipLabel.FEARED): "Hostile but wary",
    (RelationshipLabel.FRIENDLY, RelationshipLabel.INDEBTED): "Owes a debt of gratitude",
}

LABEL_VALENCE: Dict[RelationshipLabel, LabelValence] = {
    RelationshipLabel.DEVOTED: LabelValence.POSITIVE,
    RelationshipLabel.ALLIED: LabelValence.POSITIVE,
    RelationshipLabel.FRIENDLY: LabelValence.POSITIVE,
    RelationshipLabel.TRUSTED: LabelValence.POSITIVE,
    RelationshipLabel.RESPECTED: LabelValence.POSITIVE,
    RelationshipLabel.BELOVED: LabelValence.POSITIVE,
    RelationshipLabel.HOSTILE: LabelValence.NEGATIVE,
    RelationshipLabel.RIVAL: LabelValence.NEGATIVE,
    RelationshipLabel.RESENTED: LabelValence.NEGATIVE,
    RelationshipLabel.RESENTFUL: LabelValence.NEGATIVE,
    RelationshipLabel.ENEMY: LabelValence.NEGATIVE,
    RelationshipLabel.TERRIFIED: LabelValence.NEGATIVE,
    RelationshipLabel.FEARED: LabelValence.NEGATIVE,
    RelationshipLabel.WARY: LabelValence.NEUTRAL,
    RelationshipLabel.INDEBTED: LabelValence.NEUTRAL,
    RelationshipLabel.INDIFFERENT: LabelValence.NEUTRAL,
}


def _nearest_label(r: Relationship) -> Tuple[RelationshipLabel, float]:
    vector = (r.trust, r.respect, r.affection, r.fear, r.resentment)
    best = RelationshipLabel.INDIFFERENT
    best_distance = math.dist(vector, LABEL_PROTOTYPES[best])
    for label, prototype in LABEL_PROTOTYPES.items():
        if label in FALLBACK_EXCLUDED:
            continue
        distance = math.dist(vector, prototype)
        if distance < best_distance:
            best, best_distance = label, distance
    return best, max(0.0, 1.0 - best_distance)


def compute_primary_label(r: Relationship) -> LabelScore:
    for label, check, intensity in PRIMARY_RULES:
        if check(r):
            return LabelScore(label=label, intensity=round(intensity(r), 4))
    label, closeness = _nearest_label(r)
    return LabelScore(label=label, intensity=round(closeness, 4))


def compute_secondary_labels(r: Relationship) -> List[LabelScore]:
    return [
        LabelScore(label=label, intensity=round(intensity(r), 4))
        for label, check, intensity in SECONDARY_RULES
        if check(r)
    ]


def _summarize(primary: RelationshipLabel, secondary: List[LabelScore]) -> str:
    for score in secondary:
        combined: Optional[str] = COMBINED_SUMMARIES.get((primary, score.label))
        if combined is not None:
            return combined
    return SUMMARIES[primary]


def compute_labels(relationship: Relationship) -> ComputedLabels:
    """주 라벨 + 보조 라벨 + 요약. 실패하지 않는다."""
    primary = compute_primary_label(relationship)
    secondary = compute_secondary_labels(relationship)
    return ComputedLabels(
        primary=primary.label,
        labels=[primary] + secondary,
        summary=_summarize(primary.label, secondary),
    )


def get_short_label(label: RelationshipLabel) -> str:
    """목록 표시용: 첫 글자 대문자."""
    text = RelationshipLabel(label).value
    return text[:1].upper() + text[1:]


def get_label_valence(label: RelationshipLabel) -> LabelValence:
    return LABEL_VALENCE[RelationshipLabel(label)]

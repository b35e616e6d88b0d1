"""특성 카탈로그 + 감지 키워드 사전

감지기는 "첫 매치 우선"이므로 dict 삽입 순서가 곧 평가 순서다.
순서를 바꾸면 감지 결과가 바뀐다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from src.core.evolution.models import RelationshipDimension


class TraitCategory(str, Enum):
    MORAL = "moral"
    EMOTIONAL = "emotional"
    CAPABILITY = "capability"
    REPUTATION = "reputation"


@dataclass(frozen=True)
class TraitCatalogEntry:
    """사전 정의 특성"""

    trait: str
    category: TraitCategory
    description: str
    opposites: Tuple[str, ...] = ()


# ── 사전 정의 특성 24종 (4분류) ─────────────────────────────
TRAIT_CATALOG: List[TraitCatalogEntry] = [
    # moral
    TraitCatalogEntry("honorable", TraitCategory.MORAL, "Keeps promises, fights fairly", ("ruthless", "deceitful")),
    TraitCatalogEntry("ruthless", TraitCategory.MORAL, "Will do anything to achieve goals", ("honorable", "merciful")),
    TraitCatalogEntry("merciful", TraitCategory.MORAL, "Shows compassion to enemies", ("ruthless", "cruel")),
    TraitCatalogEntry("pragmatic", TraitCategory.MORAL, "Prioritizes practical outcomes", ("idealistic",)),
    TraitCatalogEntry("idealistic", TraitCategory.MORAL, "Holds to principles despite cost", ("pragmatic", "corruptible")),
    TraitCatalogEntry("corruptible", TraitCategory.MORAL, "Can be swayed from principles", ("idealistic", "honorable")),
    # emotional
    TraitCatalogEntry("haunted", TraitCategory.EMOTIONAL, "Troubled by past events", ("serene",)),
    TraitCatalogEntry("hopeful", TraitCategory.EMOTIONAL, "Believes in positive outcomes", ("bitter", "cynical")),
    TraitCatalogEntry("bitter", TraitCategory.EMOTIONAL, "Resentful of past wrongs", ("hopeful", "serene")),
    TraitCatalogEntry("serene", TraitCategory.EMOTIONAL, "At peace despite circumstances", ("volatile", "haunted")),
    TraitCatalogEntry("volatile", TraitCategory.EMOTIONAL, "Prone to sudden emotional shifts", ("serene", "guarded")),
    TraitCatalogEntry("guarded", TraitCategory.EMOTIONAL, "Keeps emotions hidden", ("volatile",)),
    # capability
    TraitCatalogEntry("battle-hardened", TraitCategory.CAPABILITY, "Experienced in combat", ("naive",)),
    TraitCatalogEntry("scholarly", TraitCategory.CAPABILITY, "Well-read and knowledgeable"),
    TraitCatalogEntry("street-wise", TraitCategory.CAPABILITY, "Knows how to survive", ("naive",)),
    TraitCatalogEntry("naive", TraitCategory.CAPABILITY, "Inexperienced with the world", ("street-wise", "battle-hardened")),
    TraitCatalogEntry("cunning", TraitCategory.CAPABILITY, "Clever and strategic"),
    TraitCatalogEntry("broken", TraitCategory.CAPABILITY, "Damaged by experiences"),
    # reputation
    TraitCatalogEntry("feared", TraitCategory.REPUTATION, "Others are afraid", ("beloved",)),
    TraitCatalogEntry("beloved", TraitCategory.REPUTATION, "Others feel affection", ("feared", "notorious")),
    TraitCatalogEntry("notorious", TraitCategory.REPUTATION, "Known for bad deeds", ("beloved", "mysterious")),
    TraitCatalogEntry("mysterious", TraitCategory.REPUTATION, "Little is known about them", ("notorious", "legendary")),
    TraitCatalogEntry("disgraced", TraitCategory.REPUTATION, "Fallen from honor", ("legendary",)),
    TraitCatalogEntry("legendary", TraitCategory.REPUTATION, "Known for great deeds", ("disgraced", "mysterious")),
]

# ── 특성 키워드 (trait → keywords) ──────────────────────────
TRAIT_KEYWORDS: Dict[str, List[str]] = {
    # moral
    "merciful": ["spare", "mercy", "forgive", "let go", "compassion", "release"],
    "ruthless": ["kill", "execute", "destroy", "crush", "eliminate", "no mercy"],
    "honorable": ["promise", "oath", "honor", "fair fight", "keep word", "honest"],
    "pragmatic": ["practical", "efficient", "expedient", "necessary evil"],
    "idealistic": ["principle", "belief", "ideal", "moral", "righteous"],
    # emotional
    "haunted": ["nightmare", "trauma", "regret", "guilt", "torment", "haunt"],
    "hopeful": ["hope", "optimistic", "bright side", "believe", "faith"],
    "bitter": ["resent", "bitter", "grudge", "never forget", "vengeance"],
    # capability
    "battle-hardened": ["combat", "fight", "battle", "victory", "defeat enemy", "slay"],
    "scholarly": ["study", "research", "learn", "knowledge", "tome", "book", "ancient text"],
    "street-wise": ["survive", "street", "hustle", "quick thinking", "resourceful"],
    "cunning": ["clever", "trick", "outsmart", "scheme", "manipulate", "deceive"],
    # reputation
    "feared": ["terror", "flee", "cower", "intimidate", "fear me"],
    "beloved": ["beloved", "adore", "love", "cherish", "grateful"],
    "notorious": ["infamous", "notorious", "criminal", "villain"],
    "legendary": ["legend", "famous", "renowned", "hero", "great deed"],
}

_T = RelationshipDimension.TRUST
_R = RelationshipDimension.RESPECT
_A = RelationshipDimension.AFFECTION
_F = RelationshipDimension.FEAR
_S = RelationshipDimension.RESENTMENT
_D = RelationshipDimension.DEBT

# ── 관계 키워드 (keyword → [(축, delta)]) ───────────────────
RELATIONSHIP_KEYWORDS: Dict[str, List[Tuple[RelationshipDimension, float]]] = {
    # 신뢰 형성
    "help": [(_T, 0.1)],
    "save": [(_T, 0.15), (_A, 0.1)],
    "protect": [(_T, 0.1)],
    "honest": [(_T, 0.1)],
    "truth": [(_T, 0.05)],
    # 신뢰 붕괴
    "betray": [(_T, -0.3), (_S, 0.2)],
    "lie": [(_T, -0.15)],
    "deceive": [(_T, -0.2)],
    "abandon": [(_T, -0.2), (_S, 0.15)],
    # 존경 형성
    "impress": [(_R, 0.1)],
    "skill": [(_R, 0.05)],
    "wise": [(_R, 0.1)],
    "victory": [(_R, 0.1)],
    "honor": [(_R, 0.1)],
    # 존경 하락
    "humiliate": [(_R, -0.2), (_S, 0.15)],
    "mock": [(_R, -0.1)],
    "coward": [(_R, -0.15)],
    # 공포
    "threaten": [(_F, 0.15)],
    "intimidate": [(_F, 0.2)],
    "torture": [(_F, 0.3), (_S, 0.2)],
    "kill": [(_F, 0.25)],
    # 부채
    "owe": [(_D, 0.2)],
    "favor": [(_D, 0.15)],
    "gift": [(_A, 0.1), (_D, 0.1)],
}


def get_trait_catalog() -> List[TraitCatalogEntry]:
    return list(TRAIT_CATALOG)


def get_traits_by_category(category: TraitCategory) -> List[TraitCatalogEntry]:
    return [e for e in TRAIT_CATALOG if e.category == TraitCategory(category)]


def find_catalog_entry(trait: str) -> TraitCatalogEntry | None:
    """대소문자 무시 조회. 카탈로그 밖의 자유 특성이면 None."""
    lowered = trait.strip().lower()
    for entry in TRAIT_CATALOG:
        if entry.trait == lowered:
            return entry
    return None

"""엔티티 진화 Core 패키지 공개 API"""

from src.core.evolution.models import (
    DIMENSION_DEFAULTS,
    CreateEvolutionInput,
    EntityRef,
    EntitySummary,
    EntityType,
    EvolutionStatus,
    EvolutionType,
    GameEventRef,
    NarrativeEvent,
    PendingEvolution,
    Relationship,
    RelationshipDimension,
    RelationshipSummary,
    Trait,
    TraitStatus,
)
from src.core.evolution.calculations import (
    apply_change,
    clamp_dimension,
    merge_dimensions,
    rederive_value,
)
from src.core.evolution.catalog import (
    RELATIONSHIP_KEYWORDS,
    TRAIT_CATALOG,
    TRAIT_KEYWORDS,
    TraitCatalogEntry,
    TraitCategory,
    get_trait_catalog,
    get_traits_by_category,
)
from src.core.evolution.detector import (
    RelationshipDetection,
    TraitDetection,
    aggregate_relationship_changes,
    detect_relationships_from_event,
    detect_traits_from_event,
    detect_traits_from_patterns,
    relationship_detection_to_evolution_input,
    trait_detection_to_evolution_input,
)
from src.core.evolution.errors import (
    EvolutionError,
    EvolutionNotFoundError,
    EvolutionValidationError,
    InvalidEvolutionStatusError,
)
from src.core.evolution.labels import (
    ComputedLabels,
    LabelScore,
    LabelValence,
    RelationshipLabel,
    compute_labels,
    get_label_valence,
    get_short_label,
)

__all__ = [
    "DIMENSION_DEFAULTS",
    "CreateEvolutionInput",
    "EntityRef",
    "EntitySummary",
    "EntityType",
    "EvolutionStatus",
    "EvolutionType",
    "GameEventRef",
    "NarrativeEvent",
    "PendingEvolution",
    "Relationship",
    "RelationshipDimension",
    "RelationshipSummary",
    "Trait",
    "TraitStatus",
    "apply_change",
    "clamp_dimension",
    "merge_dimensions",
    "rederive_value",
    "RELATIONSHIP_KEYWORDS",
    "TRAIT_CATALOG",
    "TRAIT_KEYWORDS",
    "TraitCatalogEntry",
    "TraitCategory",
    "get_trait_catalog",
    "get_traits_by_category",
    "RelationshipDetection",
    "TraitDetection",
    "aggregate_relationship_changes",
    "detect_relationships_from_event",
    "detect_traits_from_event",
    "detect_traits_from_patterns",
    "relationship_detection_to_evolution_input",
    "trait_detection_to_evolution_input",
    "EvolutionError",
    "EvolutionNotFoundError",
    "EvolutionValidationError",
    "InvalidEvolutionStatusError",
    "ComputedLabels",
    "LabelScore",
    "LabelValence",
    "RelationshipLabel",
    "compute_labels",
    "get_label_valence",
    "get_short_label",
]

"""Evolution Service 통합 테스트 (인메모리 SQLite + EventBus)"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.core.event_bus import EventBus
from src.core.event_types import EventTypes
from src.core.evolution.detector import RelationshipDetection, TraitDetection
from src.core.evolution.errors import (
    EvolutionNotFoundError,
    EvolutionValidationError,
    InvalidEvolutionStatusError,
)
from src.core.evolution.labels import RelationshipLabel
from src.core.evolution.models import (
    CreateEvolutionInput,
    EntityRef,
    EntityType,
    EvolutionStatus,
    EvolutionType,
    GameEventRef,
    RelationshipDimension,
)
from src.db.evolution_queue import PendingEvolutionQueue
from src.db.models import Base
from src.services.evolution_service import EvolutionService
from src.services.game_locks import GameLockRegistry


@pytest.fixture()
def setup():
    """인메모리 DB + EventBus + EvolutionService"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine)
    session = session_factory()
    bus = EventBus()
    service = EvolutionService(session, bus, GameLockRegistry(), rederive_on_apply=False)
    return service, session, bus


# ── helpers ──────────────────────────────────────────────────

REF = GameEventRef(id="ev-1", turn=1, game_id="g1")
PLAYER = EntityRef(EntityType.PLAYER, "p1")
NPC = EntityRef(EntityType.NPC, "n1")


def _trait(trait: str = "merciful", evolution_type: str = "trait_add") -> dict:
    return {
        "evolutionType": evolution_type,
        "entityType": "player",
        "entityId": "p1",
        "trait": trait,
        "reason": "spared the bandit",
    }


def _rel(dimension: str = "trust", change: float = 0.2) -> dict:
    return {
        "evolutionType": "relationship_change",
        "entityType": "npc",
        "entityId": "n1",
        "targetType": "player",
        "targetId": "p1",
        "dimension": dimension,
        "change": change,
        "reason": "was rescued",
    }


def _collect(bus: EventBus, event_type: str) -> list:
    received = []
    bus.subscribe(event_type, lambda e: received.append(e))
    return received


# ── 큐잉 ─────────────────────────────────────────────────────


class TestDetectEvolutions:
    def test_queues_trait_and_relationship(self, setup):
        service, _, bus = setup
        created_events = _collect(bus, EventTypes.EVOLUTION_CREATED)

        created = service.detect_evolutions("g1", REF, [_trait(), _rel()])

        assert len(created) == 2
        trait, rel = created
        assert trait.evolution_type == EvolutionType.TRAIT_ADD
        assert trait.source_event_id == "ev-1"
        assert rel.old_value == pytest.approx(0.5)
        assert rel.new_value == pytest.approx(0.7)
        assert [e.data["evolution_id"] for e in created_events] == [trait.id, rel.id]
        assert created_events[0].data["evolution"]["trait"] == "merciful"

    def test_relationship_new_value_clamped(self, setup):
        service, _, _ = setup
        service.store.upsert_relationship("g1", NPC, PLAYER, 0, {"trust": 0.9})
        created = service.detect_evolutions("g1", REF, [_rel(change=0.3)])
        assert created[0].old_value == pytest.approx(0.9)
        assert created[0].new_value == 1.0

    def test_large_delta_clamped_not_rejected(self, setup):
        service, _, _ = setup
        created = service.detect_evolutions("g1", REF, [_rel(change=-1.5)])
        assert created[0].old_value == pytest.approx(0.5)
        assert created[0].new_value == 0.0

    def test_skips_active_trait(self, setup):
        service, _, _ = setup
        service.store.add_trait("g1", EntityType.PLAYER, "p1", "merciful", 0)
        assert service.detect_evolutions("g1", REF, [_trait()]) == []

    def test_skips_pending_duplicate(self, setup):
        service, _, bus = setup
        service.detect_evolutions("g1", REF, [_trait()])
        created_events = _collect(bus, EventTypes.EVOLUTION_CREATED)

        assert service.detect_evolutions("g1", REF, [_trait()]) == []
        assert created_events == []
        assert len(service.get_pending_evolutions("g1")) == 1

    def test_duplicate_within_one_batch(self, setup):
        service, _, _ = setup
        created = service.detect_evolutions("g1", REF, [_trait(), _trait()])
        assert len(created) == 1

    def test_refused_trait_can_be_suggested_again(self, setup):
        service, _, _ = setup
        first = service.detect_evolutions("g1", REF, [_trait()])[0]
        service.refuse(first.id)
        assert len(service.detect_evolutions("g1", REF, [_trait()])) == 1

    def test_trait_remove_not_deduplicated(self, setup):
        service, _, _ = setup
        created = service.detect_evolutions(
            "g1", REF, [_trait("naive", "trait_remove"), _trait("naive", "trait_remove")]
        )
        assert len(created) == 2

    def test_invalid_batch_queues_nothing(self, setup):
        service, _, _ = setup
        bad = {"evolutionType": "relationship_change", "entityType": "npc", "entityId": "n1"}
        with pytest.raises(EvolutionValidationError):
            service.detect_evolutions("g1", REF, [_trait(), bad])
        assert service.get_pending_evolutions("g1") == []

    def test_event_from_other_game_rejected(self, setup):
        service, _, _ = setup
        with pytest.raises(EvolutionValidationError):
            service.detect_evolutions("g2", REF, [_trait()])

    def test_queue_detections(self, setup):
        service, _, _ = setup
        created = service.queue_detections(
            "g1",
            REF,
            [TraitDetection(EntityType.PLAYER, "p1", "merciful", "spare")],
            [
                RelationshipDetection(
                    EntityType.NPC, "n1", EntityType.PLAYER, "p1",
                    RelationshipDimension.FEAR, 0.25, "kill",
                )
            ],
        )
        assert [c.evolution_type for c in created] == [
            EvolutionType.TRAIT_ADD,
            EvolutionType.RELATIONSHIP_CHANGE,
        ]
        assert created[1].new_value == pytest.approx(0.25)

    def test_queue_detections_empty(self, setup):
        service, _, _ = setup
        assert service.queue_detections("g1", REF) == []


# ── 승인 ─────────────────────────────────────────────────────


class TestApprove:
    def test_approve_trait_add(self, setup):
        service, _, bus = setup
        approved_events = _collect(bus, EventTypes.EVOLUTION_APPROVED)
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]

        resolved = service.approve(pending.id, "fits")

        assert resolved.status == EvolutionStatus.APPROVED
        assert resolved.dm_notes == "fits"
        assert resolved.resolved_at is not None
        assert service.store.has_trait("g1", EntityType.PLAYER, "p1", "merciful")
        assert len(approved_events) == 1
        assert approved_events[0].data["status"] == "approved"

    def test_approve_twice_fails(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]
        service.approve(pending.id)
        with pytest.raises(InvalidEvolutionStatusError, match="Cannot approve evolution with status: approved"):
            service.approve(pending.id)

    def test_approve_trait_remove(self, setup):
        service, _, _ = setup
        service.store.add_trait("g1", EntityType.PLAYER, "p1", "naive", 0)
        pending = service.detect_evolutions("g1", REF, [_trait("naive", "trait_remove")])[0]
        service.approve(pending.id)
        assert not service.store.has_trait("g1", EntityType.PLAYER, "p1", "naive")

    def test_approve_trait_already_active_is_noop(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]
        service.store.add_trait("g1", EntityType.PLAYER, "p1", "merciful", 0)
        service.approve(pending.id)
        assert len(service.store.find_active_traits("g1", EntityType.PLAYER, "p1")) == 1

    def test_approve_relationship_applies_frozen_value(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_rel(change=0.2)])[0]
        # 제안 후 값이 바뀌어도 기본 정책은 제안 당시 값 적용
        service.store.upsert_relationship("g1", NPC, PLAYER, 1, {"trust": 0.1})
        service.approve(pending.id)
        assert service.store.get_relationship("g1", NPC, PLAYER).trust == pytest.approx(0.7)

    def test_approve_relationship_rederive(self, setup):
        _, session, bus = setup
        service = EvolutionService(session, bus, rederive_on_apply=True)
        pending = service.detect_evolutions("g1", REF, [_rel(change=0.2)])[0]
        service.store.upsert_relationship("g1", NPC, PLAYER, 1, {"trust": 0.1})
        service.approve(pending.id)
        assert service.store.get_relationship("g1", NPC, PLAYER).trust == pytest.approx(0.3)

    def test_approve_missing(self, setup):
        service, _, _ = setup
        with pytest.raises(EvolutionNotFoundError, match="Pending evolution not found: nope"):
            service.approve("nope")

    def test_failed_apply_rolls_back(self, setup):
        """적용 실패 시 레코드는 pending 유지"""
        service, session, _ = setup
        broken = PendingEvolutionQueue(session).create(
            CreateEvolutionInput(
                game_id="g1",
                turn=1,
                evolution_type=EvolutionType.RELATIONSHIP_CHANGE,
                entity_type=EntityType.NPC,
                entity_id="n1",
                reason="missing target",
            )
        )
        session.commit()

        with pytest.raises(EvolutionValidationError):
            service.approve(broken.id)
        assert service.get_evolution(broken.id).status == EvolutionStatus.PENDING


# ── 수정 ─────────────────────────────────────────────────────


class TestEdit:
    def test_edit_relationship_value(self, setup):
        service, _, bus = setup
        edited_events = _collect(bus, EventTypes.EVOLUTION_EDITED)
        pending = service.detect_evolutions("g1", REF, [_rel(change=0.3)])[0]

        resolved = service.edit(pending.id, {"newValue": 0.6}, "too strong")

        assert resolved.status == EvolutionStatus.EDITED
        assert resolved.new_value == pytest.approx(0.6)
        assert resolved.dm_notes == "too strong"
        assert service.store.get_relationship("g1", NPC, PLAYER).trust == pytest.approx(0.6)
        assert len(edited_events) == 1

    def test_edit_trait_name(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]
        service.edit(pending.id, {"trait": "compassionate"})
        traits = service.store.find_active_traits("g1", EntityType.PLAYER, "p1")
        assert [t.trait for t in traits] == ["compassionate"]

    def test_edit_dimension_carries_delta(self, setup):
        service, _, _ = setup
        service.store.upsert_relationship("g1", NPC, PLAYER, 0, {"fear": 0.4})
        pending = service.detect_evolutions("g1", REF, [_rel("trust", 0.2)])[0]

        resolved = service.edit(pending.id, {"dimension": "fear"})

        assert resolved.dimension == RelationshipDimension.FEAR
        assert resolved.old_value == pytest.approx(0.4)
        assert resolved.new_value == pytest.approx(0.6)
        rel = service.store.get_relationship("g1", NPC, PLAYER)
        assert rel.fear == pytest.approx(0.6)
        assert rel.trust == pytest.approx(0.5)

    def test_invalid_edit_keeps_pending(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_rel()])[0]
        with pytest.raises(EvolutionValidationError):
            service.edit(pending.id, {"newValue": 2.0})
        assert service.get_evolution(pending.id).is_pending

    def test_unknown_edit_key_keeps_pending(self, setup):
        """모르는 키로 수정하면 원안이 적용되지 않는다"""
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_rel(change=0.3)])[0]
        with pytest.raises(EvolutionValidationError):
            service.edit(pending.id, {"change": -0.2})
        assert service.get_evolution(pending.id).is_pending
        assert service.store.get_relationship("g1", NPC, PLAYER).trust == pytest.approx(0.5)

    def test_relationship_field_on_trait_rejected(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]
        with pytest.raises(EvolutionValidationError, match="new_value"):
            service.edit(pending.id, {"newValue": 0.4, "dimension": "trust"})
        stored = service.get_evolution(pending.id)
        assert stored.is_pending
        assert stored.new_value is None
        assert stored.dimension is None

    def test_trait_field_on_relationship_rejected(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_rel()])[0]
        with pytest.raises(EvolutionValidationError, match="trait"):
            service.edit(pending.id, {"trait": "brave"})
        stored = service.get_evolution(pending.id)
        assert stored.is_pending
        assert stored.trait is None

    def test_edit_after_refuse_fails(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]
        service.refuse(pending.id)
        with pytest.raises(InvalidEvolutionStatusError):
            service.edit(pending.id, {"trait": "kind"})


# ── 거절 ─────────────────────────────────────────────────────


class TestRefuse:
    def test_refuse_leaves_state_untouched(self, setup):
        service, _, bus = setup
        refused_events = _collect(bus, EventTypes.EVOLUTION_REFUSED)
        trait, rel = service.detect_evolutions("g1", REF, [_trait(), _rel()])

        service.refuse(trait.id, "not yet")
        service.refuse(rel.id)

        assert not service.store.has_trait("g1", EntityType.PLAYER, "p1", "merciful")
        assert service.store.get_relationship("g1", NPC, PLAYER).id == ""
        assert service.get_evolution(trait.id).dm_notes == "not yet"
        assert len(refused_events) == 2

    def test_refuse_after_approve_fails(self, setup):
        service, _, _ = setup
        pending = service.detect_evolutions("g1", REF, [_trait()])[0]
        service.approve(pending.id)
        with pytest.raises(InvalidEvolutionStatusError):
            service.refuse(pending.id)
        assert service.store.has_trait("g1", EntityType.PLAYER, "p1", "merciful")


# ── 조회 ─────────────────────────────────────────────────────


class TestQueries:
    def test_pending_list_excludes_resolved(self, setup):
        service, _, _ = setup
        a, b = service.detect_evolutions("g1", REF, [_trait("merciful"), _trait("cunning")])
        service.approve(a.id)
        assert [e.id for e in service.get_pending_evolutions("g1")] == [b.id]
        assert len(service.get_pending_evolutions("g1", pending_only=False)) == 2

    def test_entity_summary(self, setup):
        service, _, _ = setup
        service.store.add_trait("g1", EntityType.PLAYER, "p1", "merciful", 1)
        service.store.upsert_relationship(
            "g1", NPC, PLAYER, 1, {"trust": 0.9, "respect": 0.9, "affection": 0.9}
        )
        service.store.upsert_relationship(
            "g1", PLAYER, EntityRef(EntityType.NPC, "n2"), 1, {"fear": 0.8}
        )

        summary = service.get_entity_summary("g1", EntityType.PLAYER, "p1")

        assert summary.traits == ["merciful"]
        by_target = {r.target_id: r for r in summary.relationships}
        assert by_target["n1"].label == "devoted"
        assert by_target["n1"].direction == "incoming"
        assert by_target["n1"].summary == "Deeply devoted and loyal"
        assert by_target["n2"].label == "terrified"
        assert by_target["n2"].direction == "outgoing"

    def test_compute_aggregate_label(self, setup):
        service, _, _ = setup
        rel = service.store.get_relationship("g1", NPC, PLAYER)
        assert service.compute_aggregate_label(rel) == RelationshipLabel.INDIFFERENT


class TestGameLocks:
    def test_same_game_same_lock(self):
        locks = GameLockRegistry()
        assert locks.get("g1") is locks.get("g1")
        assert locks.get("g1") is not locks.get("g2")
        assert len(locks) == 2

    def test_hold_is_reentrant(self):
        locks = GameLockRegistry()
        with locks.hold("g1"):
            with locks.hold("g1"):
                pass

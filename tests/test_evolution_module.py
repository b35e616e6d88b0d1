"""EvolutionModule 통합 테스트 (ModuleManager + 인메모리 SQLite)"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.core.event_bus import GameEvent
from src.core.event_types import EventTypes
from src.core.evolution.models import EntityType, EvolutionType, NarrativeEvent
from src.db.models import Base
from src.modules.base import GameContext
from src.modules.evolution.module import EvolutionModule
from src.modules.module_manager import ModuleManager


@pytest.fixture()
def setup():
    """인메모리 DB + ModuleManager + Evolution 모듈"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()

    manager = ModuleManager()
    bus = manager.event_bus
    module = EvolutionModule(session, bus, pattern_threshold=3, pattern_window=4)
    manager.register(module)
    manager.enable("evolution")

    return manager, module, session, bus


# ── helpers ──────────────────────────────────────────────────


def _narrative(content: str, turn: int = 1, **extra) -> dict:
    return {"id": f"ev-{turn}", "game_id": "g1", "turn": turn, "content": content, **extra}


def _emit_narrative(bus, content: str, turn: int = 1, target: bool = True, **extra) -> None:
    data = {
        "event": _narrative(content, turn, **extra),
        "actor_type": "player",
        "actor_id": "p1",
    }
    if target:
        data.update({"target_type": "npc", "target_id": "n1"})
    bus.emit(GameEvent(event_type=EventTypes.NARRATIVE_EVENT, data=data, source="test"))


# ── 테스트 ───────────────────────────────────────────────────


class TestLifecycle:
    def test_register_and_enable(self, setup):
        manager, module, _, bus = setup
        assert manager.is_enabled("evolution")
        assert module.name == "evolution"
        assert module.dependencies == []
        assert module.service is not None
        assert bus.handler_count == 1

    def test_disable_unsubscribes(self, setup):
        manager, module, _, bus = setup
        manager.disable("evolution")
        assert bus.handler_count == 0
        assert module.service is None

    def test_on_turn_is_harmless(self, setup):
        manager, _, session, _ = setup
        manager.process_turn(GameContext(game_id="g1", current_turn=2, db_session=session))


class TestNarrativeEvent:
    def test_event_queues_trait_and_relationship(self, setup):
        _, module, _, bus = setup
        created = []
        bus.subscribe(EventTypes.EVOLUTION_CREATED, lambda e: created.append(e.data["evolution"]))

        _emit_narrative(bus, "You help the wounded guard and spare the thief.")

        pending = module.service.get_pending_evolutions("g1")
        types = sorted(p.evolution_type.value for p in pending)
        assert types == ["relationship_change", "trait_add"]
        trait = next(p for p in pending if p.evolution_type == EvolutionType.TRAIT_ADD)
        assert trait.trait == "merciful"
        assert trait.source_event_id == "ev-1"
        rel = next(p for p in pending if p.evolution_type == EvolutionType.RELATIONSHIP_CHANGE)
        assert (rel.entity_type, rel.entity_id) == (EntityType.NPC, "n1")
        assert rel.target_id == "p1"
        assert len(created) == 2

    def test_witnesses_without_target(self, setup):
        _, module, _, bus = setup
        _emit_narrative(bus, "You threaten the crowd.", target=False, witnesses=["w1", "w2"])

        pending = module.service.get_pending_evolutions("g1")
        assert {p.entity_id for p in pending} == {"w1", "w2"}
        assert all(p.new_value == pytest.approx(0.075) for p in pending)

    def test_pattern_reason_replaces_single_event_reason(self, setup):
        """윈도우에 3회 쌓이면 반복 패턴 사유로 제안"""
        _, module, _, _ = setup
        for turn in (1, 2, 3):
            ev = NarrativeEvent(**_narrative("You spare the thief.", turn))
            created = module.process_event(ev, EntityType.PLAYER, "p1")
            if turn == 1:
                assert [c.trait for c in created] == ["merciful"]
                module.service.refuse(created[0].id)
            elif turn == 2:
                module.service.refuse(created[0].id)
        assert created[0].reason.startswith("Repeated merciful actions (3 occurrences)")

    def test_window_is_bounded(self, setup):
        _, module, _, _ = setup
        for turn in range(1, 7):
            module.process_event(
                NarrativeEvent(**_narrative("The rain falls.", turn)), EntityType.PLAYER, "p1"
            )
        window = module.get_window("g1", EntityType.PLAYER, "p1")
        assert [e.turn for e in window] == [3, 4, 5, 6]

    def test_clear_game_drops_only_that_game(self, setup):
        _, module, _, _ = setup
        module.process_event(
            NarrativeEvent(**_narrative("The rain falls.")), EntityType.PLAYER, "p1"
        )
        module.process_event(
            NarrativeEvent(**_narrative("The rain falls.")), EntityType.NPC, "n1"
        )
        other = {**_narrative("The rain falls."), "game_id": "g2"}
        module.process_event(NarrativeEvent(**other), EntityType.PLAYER, "p1")

        assert module.clear_game("g1") == 2
        assert module.get_window("g1", EntityType.PLAYER, "p1") == []
        assert len(module.get_window("g2", EntityType.PLAYER, "p1")) == 1
        assert module.clear_game("g1") == 0

    def test_no_match_queues_nothing(self, setup):
        _, module, _, bus = setup
        _emit_narrative(bus, "The rain falls.")
        assert module.service.get_pending_evolutions("g1") == []

    def test_malformed_payload_logged_not_raised(self, setup):
        _, module, _, bus = setup
        bus.emit(
            GameEvent(
                event_type=EventTypes.NARRATIVE_EVENT,
                data={"event": "oops", "actor_type": "player", "actor_id": "p1"},
                source="test",
            )
        )
        assert module.service.get_pending_evolutions("g1") == []

"""EventBus 테스트"""

from src.core.event_bus import EventBus, GameEvent, MAX_DEPTH


class TestSubscribeEmit:
    def test_basic_emit(self):
        bus = EventBus()
        received = []
        bus.subscribe("evolution:created", lambda e: received.append(e))
        bus.emit(
            GameEvent(
                event_type="evolution:created",
                data={"evolution_id": "evo-1"},
                source="test",
            )
        )
        assert len(received) == 1
        assert received[0].data["evolution_id"] == "evo-1"

    def test_multiple_handlers_in_order(self):
        bus = EventBus()
        results = []
        bus.subscribe("evt", lambda e: results.append("a"))
        bus.subscribe("evt", lambda e: results.append("b"))
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))
        assert results == ["a", "b"]

    def test_no_handlers(self):
        """구독자 없는 이벤트 발행 — 에러 없이 무시"""
        bus = EventBus()
        bus.emit(GameEvent(event_type="no_one_listens", data={}, source="test"))

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        handler = lambda e: received.append(e)  # noqa: E731
        bus.subscribe("evt", handler)
        bus.unsubscribe("evt", handler)
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))
        assert received == []

    def test_unsubscribe_nonexistent(self):
        """미등록 핸들러 해제 — 경고만, 에러 없음"""
        bus = EventBus()
        bus.unsubscribe("evt", lambda e: None)


class TestDepthLimit:
    def test_max_depth_prevents_infinite_loop(self):
        bus = EventBus()
        call_count = 0

        def recursive_handler(event: GameEvent):
            nonlocal call_count
            call_count += 1
            bus.emit(
                GameEvent(event_type="chain", data={}, source=f"handler_{call_count}")
            )

        bus.subscribe("chain", recursive_handler)
        bus.emit(GameEvent(event_type="chain", data={}, source="origin"))

        assert call_count == MAX_DEPTH


class TestDuplicatePrevention:
    def test_same_source_same_key_blocked_in_chain(self):
        bus = EventBus()
        count = 0

        def handler(event: GameEvent):
            nonlocal count
            count += 1
            bus.emit(GameEvent(event_type="evt", data={}, source="same", key="k"))

        bus.subscribe("evt", handler)
        bus.emit(GameEvent(event_type="evt", data={}, source="same", key="k"))
        assert count == 1

    def test_different_keys_allowed_in_chain(self):
        """같은 source/event_type이라도 key가 다르면 한 체인에서 모두 전파"""
        bus = EventBus()
        created = []

        def on_trigger(event: GameEvent):
            for evolution_id in ("evo-1", "evo-2", "evo-3"):
                bus.emit(
                    GameEvent(
                        event_type="evolution:created",
                        data={"evolution_id": evolution_id},
                        source="evolution_service",
                        key=evolution_id,
                    )
                )

        bus.subscribe("trigger", on_trigger)
        bus.subscribe("evolution:created", lambda e: created.append(e.key))
        bus.emit(GameEvent(event_type="trigger", data={}, source="test"))
        assert created == ["evo-1", "evo-2", "evo-3"]

    def test_chain_clears_after_root_emit(self):
        """최상위 emit이 끝나면 같은 이벤트를 다시 발행할 수 있다"""
        bus = EventBus()
        received = []
        bus.subscribe("re", lambda e: received.append(1))
        bus.emit(GameEvent(event_type="re", data={}, source="s"))
        bus.emit(GameEvent(event_type="re", data={}, source="s"))
        assert len(received) == 2


class TestHandlerError:
    def test_handler_exception_doesnt_stop_others(self):
        bus = EventBus()
        results = []

        def bad_handler(e):
            raise ValueError("boom")

        def good_handler(e):
            results.append("ok")

        bus.subscribe("evt", bad_handler)
        bus.subscribe("evt", good_handler)
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))
        assert results == ["ok"]

    def test_handler_exception_resets_depth(self):
        bus = EventBus()
        bus.subscribe("evt", lambda e: 1 / 0)
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))

        received = []
        bus.subscribe("next", lambda e: received.append(e._depth))
        bus.emit(GameEvent(event_type="next", data={}, source="test"))
        assert received == [0]


class TestClear:
    def test_clear_removes_all(self):
        bus = EventBus()
        bus.subscribe("a", lambda e: None)
        bus.subscribe("b", lambda e: None)
        assert bus.handler_count == 2
        bus.clear()
        assert bus.handler_count == 0

"""이벤트 유형 상수"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # inbound: 서술 이벤트 확정 (AI 파이프라인/DM 에디터 → evolution 모듈)
    NARRATIVE_EVENT = "narrative_event"

    # evolution 생명주기 (evolution_service → 브로드캐스터)
    EVOLUTION_CREATED = "evolution:created"
    EVOLUTION_APPROVED = "evolution:approved"
    EVOLUTION_EDITED = "evolution:edited"
    EVOLUTION_REFUSED = "evolution:refused"

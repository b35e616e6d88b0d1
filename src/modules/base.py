"""모듈 기반 인터페이스"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from sqlalchemy.orm import Session


@dataclass
class GameContext:
    """모듈에 전달되는 게임 상태 컨텍스트"""

    game_id: str
    current_turn: int
    db_session: Optional[Session] = None

    # 모듈이 추가 데이터를 넣을 수 있는 확장 슬롯
    extra: Dict[str, Any] = field(default_factory=dict)


class GameModule(ABC):
    """모든 모듈의 기반 인터페이스

    규칙:
    - 모듈은 다른 모듈을 직접 import하지 않는다
    - 모듈 간 통신은 EventBus를 경유한다
    - Module → Core, Module → Service, Module → DB는 허용
    """

    _enabled: bool

    def __init__(self) -> None:
        self._enabled = False

    @property
    @abstractmethod
    def name(self) -> str:
        """모듈 고유 이름 (예: 'evolution')"""
        ...

    @property
    def dependencies(self) -> List[str]:
        """이 모듈이 의존하는 다른 모듈 이름 목록"""
        return []

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    @abstractmethod
    def on_enable(self) -> None:
        """모듈 활성화 시 초기화 작업"""
        ...

    @abstractmethod
    def on_disable(self) -> None:
        """모듈 비활성화 시 정리 작업"""
        ...

    @abstractmethod
    def on_turn(self, context: GameContext) -> None:
        """매 턴 호출. 모듈별 턴 처리 로직."""
        ...

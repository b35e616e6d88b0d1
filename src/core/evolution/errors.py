"""진화 서브시스템 예외

서비스가 raise, API 라우터가 HTTP 에러로 변환한다.
중복 제안 스킵은 에러가 아니다.
"""


class EvolutionError(ValueError):
    """진화 처리 실패 기반 클래스"""


class EvolutionNotFoundError(EvolutionError):
    """존재하지 않는 evolution id"""

    def __init__(self, evolution_id: str) -> None:
        super().__init__(f"Pending evolution not found: {evolution_id}")
        self.evolution_id = evolution_id


class InvalidEvolutionStatusError(EvolutionError):
    """pending이 아닌 레코드를 다시 처리하려 함"""

    def __init__(self, evolution_id: str, status: str, action: str) -> None:
        super().__init__(f"Cannot {action} evolution with status: {status}")
        self.evolution_id = evolution_id
        self.status = status
        self.action = action


class EvolutionValidationError(EvolutionError):
    """evolution_type에 필요한 필드가 없거나 잘못된 제안"""

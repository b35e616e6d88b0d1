"""게임별 직렬화 락

같은 게임의 큐/관계 행에 대한 read-modify-write를 직렬화한다.
다른 게임끼리는 서로 막지 않는다. 프로세스 전역이 아니라
앱(또는 테스트)이 인스턴스를 만들어 서비스에 주입한다.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class GameLockRegistry:
    """game_id → RLock"""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, game_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(game_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[game_id] = lock
            return lock

    @contextmanager
    def hold(self, game_id: str) -> Iterator[None]:
        with self.get(game_id):
            yield

    def __len__(self) -> int:
        return len(self._locks)

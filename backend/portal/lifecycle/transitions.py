"""
TransitionWatcher — 每个实体记住上一次看到的语义类，发现变化时发出 TransitionEvent。

  第一次见到某个实体：只记录，不发事件（没有 "上一次" 可比较）
  语义类没变：不发事件
  语义类变了：发事件，同时更新记忆

记忆只在进程内，跟随 watcher 实例（一个 PortalSession 一个）；不落库。
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .status import SemanticClass, StatusClassifier


@dataclass(frozen=True)
class TransitionEvent:
    entity_id: str
    previous: SemanticClass
    current: SemanticClass


class TransitionWatcher:

    def __init__(self):
        self._memory: dict[str, SemanticClass] = {}

    def observe(self, entity_id: str, current: SemanticClass) -> Optional[TransitionEvent]:
        previous = self._memory.get(entity_id)
        self._memory[entity_id] = current
        if previous is None or previous == current:
            return None
        return TransitionEvent(entity_id=entity_id, previous=previous, current=current)

    def observe_batch(self, records: Iterable, classifier: StatusClassifier) -> list[TransitionEvent]:
        """
        一轮刷新的全部记录。事件顺序与输入顺序一致。

        Args:
            records:    带 id / status 的记录（AppointmentRecord）
            classifier: 未知状态按 UNKNOWN 类参与比较
        """
        events = []
        for record in records:
            semantic_class = classifier.classify_or_unknown(record.status).semantic_class
            event = self.observe(record.id, semantic_class)
            if event is not None:
                events.append(event)
        return events

    def last_seen(self, entity_id: str) -> Optional[SemanticClass]:
        return self._memory.get(entity_id)

    def forget(self, entity_id: str) -> None:
        self._memory.pop(entity_id, None)

    def __len__(self):
        return len(self._memory)

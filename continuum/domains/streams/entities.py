import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional


class Stream:
    """Сущность потока (временной шкалы) домена Streams"""

    def __init__(
        self,
        id: uuid.UUID,
        title: str,
        parent_stream_id: Optional[uuid.UUID] = None,
        order_index: int = 0,
        created_at: Optional[datetime] = None
    ):
        self.id = id
        self.title = title
        self.parent_stream_id = parent_stream_id
        self.order_index = order_index
        self.created_at = created_at or datetime.now(timezone.utc)

    @classmethod
    def create_stream(
        cls,
        title: str,
        order_index: int,
        parent_stream_id: Optional[uuid.UUID] = None
    ) -> "Stream":
        """Создание нового потока"""
        return cls(
            id=uuid.uuid4(),
            title=title,
            parent_stream_id=parent_stream_id,
            order_index=order_index
        )

    def sort_key(self):
        return (self.order_index, self.created_at, str(self.id))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Stream):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Stream(id={self.id}, title={self.title}, order_index={self.order_index})"


@dataclass
class StreamNode:
    """Поток с вложенными потомками для отрисовки дерева"""
    id: uuid.UUID
    title: str
    parent_stream_id: Optional[uuid.UUID]
    order_index: int
    created_at: datetime
    depth: int
    children: List["StreamNode"] = field(default_factory=list)

    @classmethod
    def from_stream(cls, stream: Stream, depth: int, children: List["StreamNode"]) -> "StreamNode":
        return cls(
            id=stream.id,
            title=stream.title,
            parent_stream_id=stream.parent_stream_id,
            order_index=stream.order_index,
            created_at=stream.created_at,
            depth=depth,
            children=children,
        )


def assemble_tree(streams: Iterable[Stream]) -> List[StreamNode]:
    """Сборка леса потоков из плоского списка.

    Потоки группируются по parent_stream_id (None - корзина верхнего уровня), затем
    дерево собирается рекурсивно от корзины None. Порядок среди соседей - order_index,
    при равенстве - время создания и id, поэтому повторная сборка даёт то же дерево.
    Потоки, чей родитель отсутствует в выборке, в дерево не попадают.
    """
    children_map: Dict[Optional[uuid.UUID], List[Stream]] = defaultdict(list)
    for stream in streams:
        children_map[stream.parent_stream_id].append(stream)

    for siblings in children_map.values():
        siblings.sort(key=Stream.sort_key)

    def build(parent_id: Optional[uuid.UUID], depth: int, path: frozenset) -> List[StreamNode]:
        nodes = []
        for stream in children_map.get(parent_id, []):
            # Цикл в данных не должен приводить к бесконечной рекурсии
            if stream.id in path:
                continue
            nodes.append(
                StreamNode.from_stream(stream, depth, build(stream.id, depth + 1, path | {stream.id}))
            )
        return nodes

    return build(None, 0, frozenset())


def find_ancestors(stream_id: uuid.UUID, parents: Dict[uuid.UUID, Optional[uuid.UUID]]) -> List[uuid.UUID]:
    """Цепочка предков потока от родителя к корню"""
    ancestors = []
    seen = {stream_id}
    current = parents.get(stream_id)
    while current is not None and current not in seen:
        ancestors.append(current)
        seen.add(current)
        current = parents.get(current)
    return ancestors

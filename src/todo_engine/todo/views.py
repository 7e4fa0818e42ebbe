"""コレクションから導出されるビュー

いずれも保存されない純粋関数で、呼び出しのたびに正規のリストから再計算する。
"""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from .models import FilterType, Task, TodoCounts, TodoStats


def filter_entities(entities: Sequence[Task], filter_type: FilterType) -> List[Task]:
    """フィルター適用後のリスト（挿入順を保持）"""
    if filter_type is FilterType.ACTIVE:
        return [task for task in entities if not task.completed]
    if filter_type is FilterType.COMPLETED:
        return [task for task in entities if task.completed]
    return list(entities)


def count_entities(entities: Iterable[Task]) -> TodoCounts:
    total = 0
    completed = 0
    for task in entities:
        total += 1
        if task.completed:
            completed += 1
    return TodoCounts(total=total, completed=completed, active=total - completed)


def completion_rate(counts: TodoCounts) -> int:
    """完了率(%)。0件の場合は0"""
    if counts.total == 0:
        return 0
    # 0.5は切り上げる
    return math.floor(counts.completed / counts.total * 100 + 0.5)


def compute_stats(entities: Sequence[Task]) -> TodoStats:
    counts = count_entities(entities)
    return TodoStats(
        total=counts.total,
        completed=counts.completed,
        active=counts.active,
        completion_rate=completion_rate(counts),
    )

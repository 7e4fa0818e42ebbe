"""型付き永続バインディングとデバウンススケジューラー"""

from .durable import UNSET, BindingOptions, DurableBinding, ListBinding, ObjectBinding, Serializer
from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler

__all__ = [
    "UNSET",
    "BindingOptions",
    "DurableBinding",
    "ListBinding",
    "ObjectBinding",
    "Serializer",
    "ManualScheduler",
    "Scheduler",
    "ThreadingScheduler",
]

"""Client-side batching of reward notifications"""

from src.notifications.coalescer import CoalescerState, NotificationCoalescer

__all__ = [
    "CoalescerState",
    "NotificationCoalescer",
]

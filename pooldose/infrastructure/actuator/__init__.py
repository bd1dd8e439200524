"""
Actuator Package
Dose dispatchers (database command queue or direct HTTP)
"""

from .command_queue import CommandQueueDispatcher
from .http_dispatcher import HttpDoseDispatcher

__all__ = ["CommandQueueDispatcher", "HttpDoseDispatcher"]

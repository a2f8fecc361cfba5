"""Background grading: the dispatcher and the queue that feeds it."""

from .dispatcher import GradingDispatcher
from .queue import BackgroundGradingQueue, GradingQueue

__all__ = ["BackgroundGradingQueue", "GradingDispatcher", "GradingQueue"]

"""
FastAPI Task Tracker backend package.

The ASGI application lives in task_tracker.main (task_tracker.main:app).
"""

__version__ = "0.1.0"

"""
EventPlan core: multi-tenant events with recurrence and capacity-limited
registration.
"""

__version__ = "1.0.0"

"""
Scheduled jobs for the monitoring core.
"""
from .escalation_scheduler import EscalationScheduler

__all__ = ['EscalationScheduler']

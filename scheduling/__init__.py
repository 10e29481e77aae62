"""
Scheduling core: booking cancellation, peer-to-peer slot exchange and the
reminder/cleanup side effects they trigger.
"""

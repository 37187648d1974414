"""Notifications feature: proactive bot delivery of timesheet cards."""

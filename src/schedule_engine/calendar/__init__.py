"""
Calendar subsystem.

Components:
- calendar_models.py: schedule entries, availability slots, conflicts, suggestions
- calendar_service.py: schedule/availability/conflict/suggestion queries over the task store
"""

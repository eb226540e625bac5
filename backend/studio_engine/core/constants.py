"""Application-wide constants for the studio booking engine."""

from __future__ import annotations

DEFAULT_CURRENCY = "HUF"

# Credits taken from a pass when a template does not say otherwise
DEFAULT_CREDITS_REQUIRED = 1

# Recurrence
DAYS_PER_WEEK = 7
MAX_RECURRENCE_WEEKS = 104  # two years of weekly sessions in one request

# Labels used in conflict entries when no better name is available
BLOCK_LABEL = "Block"
UNKNOWN_CLIENT_LABEL = "Unknown client"
UNTITLED_CLASS_LABEL = "Class"

# Notification event names handed to the dispatcher
EVENT_BOOKING_CONFIRMED = "booking_confirmed"
EVENT_BOOKING_WAITLISTED = "booking_waitlisted"
EVENT_BOOKING_CANCELLED = "booking_cancelled"
EVENT_WAITLIST_PROMOTED = "waitlist_promoted"
EVENT_CLASS_SCHEDULED = "class_scheduled"
EVENT_CLASS_RESCHEDULED = "class_rescheduled"
EVENT_CLASS_CANCELLED = "class_cancelled"
EVENT_SESSION_CREATED = "session_created"
EVENT_SESSION_RESCHEDULED = "session_rescheduled"
EVENT_SESSION_CANCELLED = "session_cancelled"
EVENT_SETTLEMENT_GENERATED = "settlement_generated"

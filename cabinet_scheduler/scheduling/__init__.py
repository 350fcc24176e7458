"""
Scheduling Module

Pure scheduling logic:
- status: appointment lifecycle and transition table
- interval: half-open intervals and the overlap test
- conflicts: per-actor conflict detection
- availability: slot generation over working hours
- derived: read-side appointment fields
"""

"""Domain logic: proximity, trip lifecycle and wake-up call escalation."""

"""APScheduler integration: recurring tracking cycles and call retries."""

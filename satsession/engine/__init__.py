"""Timed test-taking session engine."""

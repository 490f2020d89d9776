"""Timed test-taking session engine for SAT practice tests."""

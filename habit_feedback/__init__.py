"""Core domain logic for daily habit-score feedback.

This package contains the business logic and domain models for turning a
patient's daily self-score submission into trends, achievement badges and a
single feedback channel, isolated from storage and transport so it stays easy
to test and reason about.
"""

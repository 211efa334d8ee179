"""Game domain services: questions, scoring, timers, rooms and the match coordinator.

This package contains the game mechanics the socket handlers and HTTP
routes call into, keeping transport concerns separated from the race rules.
"""

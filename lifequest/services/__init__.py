"""
Service Layer Package

- GamificationService: per-character event processing over a StateStore
"""

from lifequest.services.gamification_service import GamificationService

__all__ = ["GamificationService"]

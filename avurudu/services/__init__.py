"""Services package — expose all concrete services from one import."""
from .game_service import GameService
from .registration_service import RegistrationService

__all__ = [
    'GameService',
    'RegistrationService',
]

# Business Logic Services
"""
Services package for the pet hunting backend.

Static config loading, the account economy, quest progress and pet
progression.
"""

from .config_loader import GameConfigLoader, get_game_config, load_game_config
from .economy_service import EconomyService
from .pet_service import BattleSettlement, EvolutionOutcome, PetService
from .quest_notifier import QuestNotifier

__all__ = [
    'GameConfigLoader',
    'get_game_config',
    'load_game_config',
    'EconomyService',
    'BattleSettlement',
    'EvolutionOutcome',
    'PetService',
    'QuestNotifier',
]

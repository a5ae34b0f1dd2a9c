"""
Bonus Handler Registry

Maps bonus type to handler. Owned by the engine that uses it; custom handlers
are added with register() without touching the built-in ones.
"""

import logging
from typing import Dict, List, Optional

from .handlers import BonusHandler, create_builtin_handlers

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Bonus type -> handler lookup"""

    def __init__(self):
        self._handlers: Dict[str, BonusHandler] = {}

    def register(self, handler: BonusHandler) -> None:
        if handler.bonus_type in self._handlers:
            logger.warning(f"Overwriting handler for bonus type: {handler.bonus_type}")
        self._handlers[handler.bonus_type] = handler
        logger.debug(f"Registered bonus handler: {handler.bonus_type} ({handler.category})")

    def unregister(self, bonus_type: str) -> bool:
        return self._handlers.pop(bonus_type, None) is not None

    def get_handler(self, bonus_type: str) -> Optional[BonusHandler]:
        return self._handlers.get(bonus_type)

    def has_handler(self, bonus_type: str) -> bool:
        return bonus_type in self._handlers

    def get_registered_types(self) -> List[str]:
        return list(self._handlers.keys())

    def get_all_handlers(self) -> List[BonusHandler]:
        return list(self._handlers.values())

    def get_handlers_by_category(self) -> Dict[str, List[str]]:
        """Registered bonus types grouped by category"""
        categories: Dict[str, List[str]] = {}
        for handler in self._handlers.values():
            categories.setdefault(handler.category, []).append(handler.bonus_type)
        return categories

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, bonus_type: str) -> bool:
        return self.has_handler(bonus_type)


def create_default_registry(trial_expiration_days: Optional[int] = None) -> HandlerRegistry:
    """Registry holding every built-in handler"""
    registry = HandlerRegistry()
    if trial_expiration_days:
        handlers = create_builtin_handlers(trial_expiration_days)
    else:
        handlers = create_builtin_handlers()
    for handler in handlers:
        registry.register(handler)
    logger.info(f"Bonus handler registry initialized with {len(registry)} handlers")
    return registry

"""Find the catalog row a parsed candidate refers to."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Helmet, make_natural_key

logger = logging.getLogger(__name__)


class HelmetReconciler:
    """Read-only lookup of an existing helmet for (player, team, type, design).

    The exact natural key is tried first. With ``relaxed`` enabled the lookup
    then drops design_type, and finally helmet_type, returning the lowest id
    at the first level that matches. Relaxed hits can belong to a different
    design variant, so every one is logged.
    """

    def __init__(self, db: Session, relaxed: Optional[bool] = None):
        self.db = db
        self.relaxed = settings.reconcile_relaxed_matching if relaxed is None else relaxed

    def _base_query(self, player: str, team: Optional[str]):
        return (
            self.db.query(Helmet)
            .filter(func.lower(Helmet.player) == player.strip().lower())
            .filter(func.lower(func.coalesce(Helmet.team, "")) == (team or "").strip().lower())
        )

    def find(
        self,
        player: Optional[str],
        team: Optional[str],
        helmet_type: Optional[str],
        design_type: Optional[str] = "regular",
    ) -> Optional[Helmet]:
        if not player:
            return None

        key = make_natural_key(player, team, helmet_type, design_type)
        exact = self.db.query(Helmet).filter(Helmet.natural_key == key).first()
        if exact or not self.relaxed:
            return exact

        by_type = (
            self._base_query(player, team)
            .filter(Helmet.helmet_type == helmet_type)
            .order_by(Helmet.id)
            .first()
        )
        if by_type:
            logger.info(f"Relaxed match (ignoring design) for {key} -> helmet {by_type.id}")
            return by_type

        by_player = self._base_query(player, team).order_by(Helmet.id).first()
        if by_player:
            logger.info(f"Relaxed match (player+team only) for {key} -> helmet {by_player.id}")
        return by_player

# teamcalc/catalog.py
import json
import logging
import os
from typing import Any, Dict, Optional

from models import Card
from teamcalc.engine.team_types import ASSIST_TYPE

logger = logging.getLogger(__name__)

# --- 路径配置 (可由环境变量覆盖) ---
CARDS_PATH = os.environ.get("TEAMCALC_CARDS_PATH", "data/cards.json")


def load_json(path: str) -> Any:
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def parse_catalog(raw: Any) -> Dict[str, Card]:
    """
    支持三种格式：
      {"cards": {id: card}}  /  {id: card}  /  [card, ...]
    列表形式以卡牌自身的 id 为键
    """
    if raw is None:
        return {}
    if isinstance(raw, dict) and "cards" in raw:
        raw = raw["cards"]

    catalog: Dict[str, Card] = {}
    if isinstance(raw, list):
        for item in raw:
            card = Card.model_validate(item)
            catalog[card.id] = card
    elif isinstance(raw, dict):
        for card_id, item in raw.items():
            data = dict(item)
            data.setdefault("id", card_id)
            catalog[card_id] = Card.model_validate(data)
    else:
        raise ValueError(f"Unsupported catalog format: {type(raw).__name__}")
    return catalog


def load_catalog(path: Optional[str] = None) -> Dict[str, Card]:
    path = path or CARDS_PATH
    raw = load_json(path)
    if raw is None:
        logger.warning("Card catalog %s not found, using empty catalog", path)
        return {}
    catalog = parse_catalog(raw)
    logger.info("Loaded %d cards from %s", len(catalog), path)
    return catalog


def is_assist_card(card: Card) -> bool:
    return card.stats.type == ASSIST_TYPE or card.stats.type_name == "Assist"

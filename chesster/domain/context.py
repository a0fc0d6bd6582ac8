"""Message normalization and classification.

Pure Python, no framework dependencies.
"""

import re
from typing import Optional

from chesster.domain.models import MessageCategory, MessageContext


def _mention_re(bot_id: str, bot_name: Optional[str] = None) -> "re.Pattern[str]":
    # <@ID>, <@!ID> (discord nickname form) and <@ID|name> (slack labelled form)
    alternatives = [rf"<@!?{re.escape(bot_id)}(?:\|[^>]*)?>"]
    if bot_name:
        alternatives.append(rf"(?<![\w@])@{re.escape(bot_name)}\b")
    return re.compile("(?:" + "|".join(alternatives) + r")\s*", re.IGNORECASE)


def normalize_text(text: str, bot_id: Optional[str], bot_name: Optional[str] = None) -> str:
    """Strip mentions of the bot and trim, so ``<@U999> help`` becomes ``help``.

    Idempotent: normalizing already-normalized text returns it unchanged.
    """
    if not text:
        return ""
    if bot_id:
        mention = _mention_re(bot_id, bot_name)
        # Removing one mention can splice its neighbours into another
        while True:
            stripped = mention.sub("", text)
            if stripped == text:
                break
            text = stripped
    return text.strip()


def classify(is_im: bool, is_group: bool, is_mention: bool) -> MessageContext:
    """Derive the single message category from channel and mention flags."""
    if is_mention:
        return MessageContext(MessageCategory.DIRECT_MENTION)
    if is_im and not is_group:
        return MessageContext(MessageCategory.DIRECT_MESSAGE)
    return MessageContext(MessageCategory.AMBIENT)

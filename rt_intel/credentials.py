# rt_intel/credentials.py
import re
from dataclasses import dataclass
from typing import Optional

TOKEN_RE = re.compile(r"(\d{8,15}:[a-zA-Z0-9_-]{35,50})")
# Public @channel names, supergroup/channel ids (-100...), plain group ids
CHAT_ID_RE = re.compile(r"(@[a-zA-Z0-9_]{4,})|(-100\d{10,13})|(-\d{8,13})")


@dataclass
class ImportedCredentials:
    token: str
    chat_id: str


def find_token(text: str) -> Optional[str]:
    match = TOKEN_RE.search(text or "")
    return match.group(1) if match else None


def find_chat_id(text: str) -> Optional[str]:
    match = CHAT_ID_RE.search(text or "")
    return match.group(0) if match else None


def parse_credentials(text: str) -> Optional[ImportedCredentials]:
    """
    Pulls a bot token and a destination id out of pasted free text.
    Both have to be present, otherwise nothing is imported.
    """
    token = find_token(text)
    chat_id = find_chat_id(text)
    if not token or not chat_id:
        return None
    return ImportedCredentials(token=token, chat_id=chat_id)

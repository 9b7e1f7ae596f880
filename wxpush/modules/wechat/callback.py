import hashlib
import hmac
import logging
import xml.etree.ElementTree as ET
from wxpush.modules.messages.schemas import Direction, Message

log = logging.getLogger("wechat.callback")

class CallbackParseError(ValueError):
    pass

def verify_signature(token: str | None, signature: str, timestamp: str, nonce: str) -> bool:
    """sha1 over the sorted concatenation of token, timestamp and nonce."""
    if not token or not signature:
        return False
    digest = hashlib.sha1("".join(sorted([token, timestamp, nonce])).encode("utf-8")).hexdigest()
    return hmac.compare_digest(digest, signature)

def parse_xml_message(xml_data: str | bytes) -> dict[str, str]:
    try:
        root = ET.fromstring(xml_data)
    except ET.ParseError as e:
        raise CallbackParseError(f"Invalid XML: {e}")
    return {child.tag: (child.text or "") for child in root}

def inbound_message(channel_id: str, fields: dict[str, str]) -> Message:
    msg_type = fields.get("MsgType", "unknown")
    if msg_type == "event":
        msg_type = f"event:{fields.get('Event', '').lower()}"
    content = fields.get("Content")
    return Message(
        direction=Direction.INBOUND,
        type=msg_type,
        channel_id=channel_id,
        open_id=fields.get("FromUserName") or None,
        title=(content or msg_type)[:64],
        content=content,
    )

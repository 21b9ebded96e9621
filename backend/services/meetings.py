import secrets

from backend.core import config


def generate_meeting_link() -> str:
    """Return a unique room URL on the configured meeting host."""
    room_id = ''.join(secrets.choice('0123456789') for _ in range(11))
    return f'{config.MEETING_BASE_URL}/{config.MEETING_ROOM_PREFIX}-{room_id}'

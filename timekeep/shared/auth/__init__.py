from .auth import (
    decode_token,
    extract_user_id,
    get_current_user
)

__all__ = [
    'decode_token',
    'extract_user_id',
    'get_current_user'
]

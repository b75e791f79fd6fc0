from .auth import User, SessionToken, SecurityEvent
from .inventory import Product, SequenceCounter
from .handovers import HandOver

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Product', 'SequenceCounter',
    'HandOver',
]

"""
Control pipe protocol: frame codec, pipe primitives and control channels.
"""

from .codec import (
    Decoded,
    FrameDecoder,
    IncompleteFrame,
    InvalidFrame,
    decode,
    decode_exact,
    encode,
)
from .channel import AsyncControlChannel, BaseControlChannel, ControlChannel

__all__ = [
    'Decoded',
    'FrameDecoder',
    'IncompleteFrame',
    'InvalidFrame',
    'decode',
    'decode_exact',
    'encode',
    'AsyncControlChannel',
    'BaseControlChannel',
    'ControlChannel',
]

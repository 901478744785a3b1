"""
Messaging infrastructure.
"""
from .redis_streams import RedisStreamTransport, publish_payload

__all__ = [
    'RedisStreamTransport',
    'publish_payload',
]

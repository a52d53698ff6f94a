# API Module
"""
Framework-independent request handlers for the file exchange endpoints.
"""

from .handlers import ApiResponse, TransferGateway, INTEGRITY_HEADER

__all__ = [
    'ApiResponse',
    'TransferGateway',
    'INTEGRITY_HEADER',
]

"""
Leveled application logger (warning, info, request, error, slow, great)
"""
from restock.logging.custom_logger import CustomLogger, get_logger
from restock.logging.log_levels import LogLevel

__all__ = [
    'CustomLogger',
    'LogLevel',
    'get_logger',
]

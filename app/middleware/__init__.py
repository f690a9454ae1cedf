"""
Middleware package for request logging
"""
from .logging import logging_middleware

__all__ = ["logging_middleware"]

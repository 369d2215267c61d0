"""
Pydantic schemas for SuperNanny Backend.

Contains all API request/response schemas organized by module.
"""

from .common import *
from .responses import *

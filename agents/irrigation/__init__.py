# server/agents/irrigation/__init__.py
"""
Irrigation agent package
"""

from .agent import IrrigationAgent
from .models import IrrigationRequest, IrrigationResponse

__all__ = ["IrrigationAgent", "IrrigationRequest", "IrrigationResponse"]

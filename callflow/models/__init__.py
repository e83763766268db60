"""Data models for the call-flow controller."""

from .appointment import AppointmentDetails
from .call_data import CallData, ConversationState

__all__ = ["AppointmentDetails", "CallData", "ConversationState"]

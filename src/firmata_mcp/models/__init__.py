"""Data models for capability reports and board state."""

from .capability import CapabilityReport, PinCapability

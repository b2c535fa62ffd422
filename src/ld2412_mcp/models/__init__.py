"""Data models for LD2412 target reports."""

from .target import (
    TargetState,
    Target,
    BasicTargetData,
    EngineeringModeData,
    TargetData,
)

"""Routers package."""

from . import (
    health,
    webhook,
    automations,
    activity,
)

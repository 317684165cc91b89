"""Application services."""

from stashbase.application.services.resource import Resource
from stashbase.application.services.resource_manager import ResourceManager

__all__ = ["Resource", "ResourceManager"]

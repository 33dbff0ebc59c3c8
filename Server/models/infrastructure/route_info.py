"""
RouteWarden Server - Route Info Model

Dataclass for one endpoint registered on the web application.
Ephemeral: produced by the route inventory and consumed by the classifier.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class RouteInfo:
    """Represents one registered endpoint"""
    uri: str  # Path template, e.g. "/api/users/{user_id}"
    methods: List[str] = field(default_factory=list)
    name: Optional[str] = None  # Symbolic route name, e.g. "users.show"

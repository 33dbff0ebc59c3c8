"""
RouteWarden Server - Route Manifest Models

Dataclasses for the versioned route manifest consumed by the permission synchronizer.
"""

import hashlib
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional

MANIFEST_VERSION = 1


@dataclass
class ManifestEntry:
    """One classified (route, method) pair"""
    uri: str
    method: str
    name: Optional[str]
    resource: str
    action: str
    permission_name: str

    def ToDict(self) -> dict:
        return asdict(self)


@dataclass
class RouteManifest:
    """
    Versioned list of classified routes
    The checksum covers the routes only, so regenerating an unchanged
    route table yields the same checksum.
    """
    generated_at: datetime
    routes: List[ManifestEntry] = field(default_factory=list)
    version: int = MANIFEST_VERSION

    def Checksum(self) -> str:
        """SHA-256 of the canonical JSON of the routes"""
        canonical = json.dumps([entry.ToDict() for entry in self.routes], sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def ToDict(self) -> dict:
        return {
            "version": self.version,
            "generated_at": self.generated_at.isoformat(),
            "checksum": self.Checksum(),
            "routes": [entry.ToDict() for entry in self.routes],
        }

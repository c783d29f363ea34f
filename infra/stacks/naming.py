"""
Deterministic resource names and the per-stack resource index.

Every physical name is "{stage}-redash-{component}[-{role}]", so names are
unique inside a stage and stable across re-deploys. The index is how the stack
hands constructed resources to each other: by logical name, registered once.
"""
import logging
from typing import Any, Dict, List, Optional

from stacks.config import RedashConfig
from stacks.errors import NameCollisionError

logger = logging.getLogger(__name__)


def resource_id(config: RedashConfig, component: str, role: Optional[str] = None) -> str:
    parts = [config.stage_name, "redash", component]
    if role:
        parts.append(role)
    return "-".join(parts)


class ResourceIndex:
    """Constructed resources keyed by logical name."""

    def __init__(self) -> None:
        self._resources: Dict[str, Any] = {}

    def add(self, name: str, resource: Any) -> Any:
        if name in self._resources:
            raise NameCollisionError(f"Resource {name!r} is already registered.")
        self._resources[name] = resource
        logger.debug(f"[naming] registered {name}")
        return resource

    def get(self, name: str) -> Any:
        try:
            return self._resources[name]
        except KeyError:
            raise KeyError(f"No resource registered as {name!r}") from None

    def names(self) -> List[str]:
        return list(self._resources)

    def __contains__(self, name: str) -> bool:
        return name in self._resources

    def __len__(self) -> int:
        return len(self._resources)

"""
Cache Policy Manager
====================

Loads per-namespace TTL overrides from YAML and hot-reloads them with
watchdog, so TTL tuning does not require a restart.

File format::

    namespaces:
      specializations: 60
      help:faqs: 1200
"""

import threading
from pathlib import Path
from typing import Dict, Optional

import yaml
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from caseflow.core import ConfigurationException
from caseflow.shared.infrastructure.cache import CachePolicy, StaleCache
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for cache policy file changes."""

    def __init__(self, manager: "CachePolicyManager", path: Path):
        self.manager = manager
        self.path = path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.path.resolve():
            logger.info(f"Cache policy file changed: {event.src_path}")
            self.manager.reload()


def parse_overrides(data: Optional[dict]) -> Dict[str, float]:
    """Validate the ``namespaces`` mapping of a policy document."""
    if not data:
        return {}
    namespaces = data.get("namespaces", {})
    if not isinstance(namespaces, dict):
        raise ConfigurationException("'namespaces' must be a mapping of namespace to seconds")

    overrides: Dict[str, float] = {}
    for name, ttl in namespaces.items():
        try:
            seconds = float(ttl)
        except (TypeError, ValueError):
            raise ConfigurationException(f"TTL for '{name}' is not a number: {ttl!r}")
        if seconds <= 0:
            raise ConfigurationException(f"TTL for '{name}' must be positive")
        overrides[str(name)] = seconds
    return overrides


class CachePolicyManager:
    """
    Applies YAML TTL overrides on top of the settings-derived base policy.
    """

    def __init__(self, cache: StaleCache, base_policy: CachePolicy):
        self._cache = cache
        self._base = base_policy
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> CachePolicy:
        """Initial load. A missing file leaves the base policy in place."""
        self._path = path
        policy = self._build(path)
        self._apply(policy)
        return policy

    def _build(self, path: Path) -> CachePolicy:
        if not path.exists():
            logger.info(f"Cache policy file not found: {path}, using settings TTLs")
            return self._base

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return self._base.with_overrides(parse_overrides(data))

    def _apply(self, policy: CachePolicy) -> None:
        with self._lock:
            self._cache.policy = policy

    def reload(self) -> bool:
        """Reload the policy file; a bad file keeps the current policy."""
        if self._path is None:
            return False

        try:
            policy = self._build(self._path)
        except (ConfigurationException, yaml.YAMLError, OSError) as e:
            logger.error(f"Failed to reload cache policy: {e}")
            return False

        self._apply(policy)
        logger.info("Cache policy reloaded", extra={"namespaces": policy.namespaces})
        return True

    def start_watching(self) -> None:
        """Watch the policy file for changes (skipped when it does not exist)."""
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(f"Cache policy file doesn't exist, skipping file watch: {self._path}")
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                PolicyFileHandler(self, self._path),
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching cache policy file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static policy: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def policy(self) -> CachePolicy:
        return self._cache.policy

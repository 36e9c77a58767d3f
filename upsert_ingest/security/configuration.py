"""
Cluster configuration loading and caching.

A configuration is built from Hadoop-style XML site files named by a descriptor
string (comma-separated paths). Parsing the files is cheap but not free, and the
same descriptor is looked up on every validation and connection, so the last built
configuration is kept in a single-slot ConfigurationCache and rebuilt only when the
descriptor changes.

Example site file:

    <configuration>
      <property>
        <name>hadoop.security.authentication</name>
        <value>kerberos</value>
      </property>
    </configuration>
"""

from __future__ import annotations

import threading
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Tuple

from upsert_ingest.errors import ConfigurationBuildFailed
from upsert_ingest.utils.logging import get_logger

log = get_logger(__name__)

AUTHENTICATION_KEY = "hadoop.security.authentication"
KRB5_CONF_KEY = "hadoop.security.krb5.conf"
DEFAULT_FS_KEY = "fs.defaultFS"

_DEFAULTS: Dict[str, str] = {AUTHENTICATION_KEY: "simple"}


@dataclass(frozen=True)
class ClusterConfiguration:
    """
    Immutable view of the merged properties of one or more site files.
    """

    properties: Mapping[str, str] = field(default_factory=dict)
    resources: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.properties.get(key, default)

    @property
    def security_enabled(self) -> bool:
        return (self.get(AUTHENTICATION_KEY) or "").strip().lower() == "kerberos"


@dataclass(frozen=True)
class CachedConfiguration:
    """A configuration together with the descriptor it was built from."""

    descriptor: str
    configuration: ClusterConfiguration


def split_descriptor(descriptor: str) -> Tuple[str, ...]:
    """Resource paths named by a descriptor, blanks dropped."""
    return tuple(part.strip() for part in (descriptor or "").split(",") if part.strip())


def _read_site_file(path: str) -> Dict[str, str]:
    properties: Dict[str, str] = {}
    root = ElementTree.parse(path).getroot()
    for prop in root.iter("property"):
        name = (prop.findtext("name") or "").strip()
        if not name:
            continue
        properties[name] = (prop.findtext("value") or "").strip()
    return properties


def load_configuration(descriptor: str) -> ClusterConfiguration:
    """
    Build a configuration from the files named by ``descriptor``.

    Later files override properties of earlier ones. A blank descriptor yields the
    defaults only (security disabled).

    Raises
    ------
    ConfigurationBuildFailed
        If a file cannot be read or is not well-formed XML.
    """
    resources = split_descriptor(descriptor)
    properties = dict(_DEFAULTS)
    for path in resources:
        try:
            properties.update(_read_site_file(path))
        except (OSError, ElementTree.ParseError) as exc:
            raise ConfigurationBuildFailed(
                f"Unable to load configuration resource '{path}': {exc}"
            ) from exc
    return ClusterConfiguration(properties=properties, resources=resources)


class ConfigurationCache:
    """
    Thread-safe single-slot cache of the last built configuration.

    Reads never take the lock: the slot holds one immutable CachedConfiguration and
    is replaced with a single assignment, so a reader sees either the previous pair
    or the new one. Rebuilds are serialized by a writer lock and re-check the slot
    so concurrent misses on the same descriptor build only once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[CachedConfiguration] = None

    @property
    def current(self) -> Optional[CachedConfiguration]:
        return self._current

    def get_or_build(
        self,
        descriptor: str,
        builder: Callable[[str], ClusterConfiguration],
    ) -> CachedConfiguration:
        """
        Return the cached pair for ``descriptor``, building it first on a miss.

        Any difference from the held descriptor (or an empty slot) triggers a
        synchronous rebuild; builder errors propagate and leave the slot unchanged.
        """
        current = self._current
        if current is not None and current.descriptor == descriptor:
            return current

        with self._lock:
            current = self._current
            if current is None or current.descriptor != descriptor:
                log.debug("Reloading configuration resources", extra={"descriptor": descriptor})
                current = CachedConfiguration(descriptor, builder(descriptor))
                self._current = current
            return current

    def clear(self) -> None:
        with self._lock:
            self._current = None


__all__ = [
    "AUTHENTICATION_KEY",
    "DEFAULT_FS_KEY",
    "KRB5_CONF_KEY",
    "CachedConfiguration",
    "ClusterConfiguration",
    "ConfigurationCache",
    "load_configuration",
    "split_descriptor",
]

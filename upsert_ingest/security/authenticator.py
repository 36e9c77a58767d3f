"""
Kerberos authentication for secured clusters.

Login is keytab based: ``kinit`` obtains a ticket for the principal from the keytab
and writes it to a credential cache, which libpq's GSSAPI support then uses when
the connection pool opens connections. The Authenticator also offers a cheap
pre-flight ``validate`` that checks principal/keytab settings against the cached
configuration without contacting the KDC.
"""

from __future__ import annotations

import os
import socket
import subprocess
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import urlparse

from upsert_ingest.errors import AuthenticationFailed
from upsert_ingest.security.configuration import (
    DEFAULT_FS_KEY,
    KRB5_CONF_KEY,
    ClusterConfiguration,
    ConfigurationCache,
    load_configuration,
)
from upsert_ingest.utils.logging import get_logger

log = get_logger(__name__)

_PRELOAD_TIMEOUT_SECONDS = 5.0
_KINIT_TIMEOUT_SECONDS = 30.0

_context_lock = threading.Lock()
_security_context: Optional[ClusterConfiguration] = None


def install_security_context(configuration: ClusterConfiguration) -> None:
    """
    Make ``configuration`` the process-wide default security context.

    Exports KRB5_CONFIG when the configuration names a krb5.conf, since the
    Kerberos libraries only read it from the environment.
    """
    global _security_context
    with _context_lock:
        _security_context = configuration
        krb5_conf = configuration.get(KRB5_CONF_KEY)
        if krb5_conf:
            os.environ["KRB5_CONFIG"] = krb5_conf


def get_security_context() -> Optional[ClusterConfiguration]:
    return _security_context


@dataclass(frozen=True)
class KerberosIdentity:
    """An authenticated principal and the credential cache holding its ticket."""

    principal: str
    ccache: str
    authenticated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ValidationProblem:
    """One reason a principal/keytab/configuration combination is unusable."""

    subject: str
    input: Optional[str]
    explanation: str


class Authenticator:
    """
    Keytab/principal login, validation and preload against a cluster configuration.

    Parameters
    ----------
    cache : ConfigurationCache
        Owned by the caller and shared with anything else resolving the same
        descriptors.
    ccache : str
        Credential cache that ``kinit`` writes and libpq reads (KRB5CCNAME syntax).
    kinit_path : str
        The ``kinit`` executable.
    """

    def __init__(
        self,
        cache: ConfigurationCache,
        ccache: str = "FILE:/tmp/krb5cc_upsert_ingest",
        kinit_path: str = "kinit",
    ) -> None:
        self.cache = cache
        self.ccache = ccache
        self.kinit_path = kinit_path

    def configuration(self, descriptor: str) -> ClusterConfiguration:
        """Configuration for ``descriptor``, rebuilt only when the descriptor changed."""
        return self.cache.get_or_build(descriptor, load_configuration).configuration

    def validate(
        self,
        descriptor: str,
        principal: Optional[str],
        keytab_path: Optional[str],
    ) -> List[ValidationProblem]:
        """
        Check principal and keytab against the configuration named by ``descriptor``.

        Does not log in. ConfigurationBuildFailed propagates when the descriptor's
        files cannot be loaded.
        """
        problems: List[ValidationProblem] = []
        configuration = self.configuration(descriptor)

        if not configuration.security_enabled:
            if principal or keytab_path:
                log.warning(
                    "Configuration does not have security enabled, "
                    "Keytab and Principal will be ignored",
                    extra={"descriptor": descriptor},
                )
            return problems

        if not (principal or "").strip():
            problems.append(
                ValidationProblem(
                    subject="Kerberos Principal",
                    input=principal,
                    explanation="Kerberos Principal must be provided when using a secure configuration",
                )
            )
        if not (keytab_path or "").strip():
            problems.append(
                ValidationProblem(
                    subject="Kerberos Keytab",
                    input=keytab_path,
                    explanation="Kerberos Keytab must be provided when using a secure configuration",
                )
            )
        elif not (os.path.isfile(keytab_path) and os.access(keytab_path, os.R_OK)):
            problems.append(
                ValidationProblem(
                    subject="Kerberos Keytab",
                    input=keytab_path,
                    explanation=f"Keytab '{keytab_path}' does not exist or is not readable",
                )
            )
        return problems

    def _kinit_env(self, configuration: ClusterConfiguration) -> Dict[str, str]:
        env = dict(os.environ)
        env["KRB5CCNAME"] = self.ccache
        krb5_conf = configuration.get(KRB5_CONF_KEY)
        if krb5_conf:
            env["KRB5_CONFIG"] = krb5_conf
        return env

    def login(
        self,
        configuration: ClusterConfiguration,
        principal: str,
        keytab_path: str,
    ) -> KerberosIdentity:
        """
        Obtain a ticket for ``principal`` from ``keytab_path``.

        Every attempt logs in again; nothing is cached here.

        Raises
        ------
        AuthenticationFailed
            On any I/O or credential failure, chained to the underlying error.
        """
        try:
            with open(keytab_path, "rb"):
                pass
            subprocess.run(
                [self.kinit_path, "-k", "-t", keytab_path, "-c", self.ccache, principal],
                check=True,
                capture_output=True,
                text=True,
                env=self._kinit_env(configuration),
                timeout=_KINIT_TIMEOUT_SECONDS,
            )
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise AuthenticationFailed(
                f"Kerberos authentication for {principal} failed: {detail}"
            ) from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise AuthenticationFailed(
                f"Kerberos authentication for {principal} failed: {exc}"
            ) from exc

        log.info("Kerberos login succeeded", extra={"principal": principal, "ccache": self.ccache})
        return KerberosIdentity(principal=principal, ccache=self.ccache)

    def preload(self, configuration: ClusterConfiguration) -> None:
        """
        Best-effort warm-up: touch the default filesystem endpoint and install the
        configuration as the process-wide security context.

        Failures are discarded on purpose. Later use of the same configuration
        fails again with better context.
        """
        try:
            default_fs = configuration.get(DEFAULT_FS_KEY)
            if default_fs:
                endpoint = urlparse(default_fs)
                if endpoint.hostname and endpoint.port:
                    socket.create_connection(
                        (endpoint.hostname, endpoint.port), timeout=_PRELOAD_TIMEOUT_SECONDS
                    ).close()
            install_security_context(configuration)
        except (OSError, ValueError) as exc:
            log.debug("Preload failed; result discarded", extra={"error": str(exc)})


__all__ = [
    "Authenticator",
    "KerberosIdentity",
    "ValidationProblem",
    "get_security_context",
    "install_security_context",
]

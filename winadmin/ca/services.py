"""
Windows service control and audit policy collaborators.

ServiceController restarts the CA service once the settings are applied;
AuditPolicy enables auditing for the Certification Services subcategory.
Both shell out to the built-in Windows tools through run_command.
"""

from __future__ import annotations

import logging
from typing import Optional

from winadmin.utils.commands import (
    DEFAULT_COMMAND_TIMEOUT,
    CommandTimeoutError,
    combined_output,
    run_command,
)

logger = logging.getLogger(__name__)

# Default CA service name
CA_SERVICE_NAME = "certsvc"

# Default audit subcategory for the CA
CERTIFICATION_SERVICES = "Certification Services"

# net.exe reports this when stopping a service that is not running
_NET_NOT_STARTED = "3521"


class ServiceError(Exception):
    """Raised when a Windows service cannot be restarted."""

    pass


class AuditPolicyError(Exception):
    """Raised when the audit policy cannot be changed."""

    pass


class ServiceController:
    """
    Restart Windows services with net.exe.

    Usage:
        controller = ServiceController(timeout=120)
        controller.restart("certsvc")
    """

    def __init__(self, timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT):
        self.timeout = timeout

    def _net(self, action: str, service_name: str) -> tuple[int, str]:
        try:
            result = run_command(["net", action, service_name], timeout=self.timeout)
        except CommandTimeoutError as e:
            raise ServiceError(str(e)) from e
        return result.returncode, combined_output(result)

    def restart(self, service_name: str) -> str:
        """
        Stop and start a service.

        A service that was not running is simply started.

        Returns:
            Combined tool output

        Raises:
            ServiceError: If the service cannot be started again
        """
        logger.info(f"Restarting service {service_name}")

        code, stop_output = self._net("stop", service_name)
        if code != 0 and _NET_NOT_STARTED not in stop_output:
            raise ServiceError(f"Failed to stop {service_name}: {stop_output}")

        code, start_output = self._net("start", service_name)
        if code != 0:
            raise ServiceError(f"Failed to start {service_name}: {start_output}")

        logger.info(f"Service {service_name} restarted")
        return "\n".join(p for p in (stop_output, start_output) if p)


def _flag(enabled: bool) -> str:
    return "enable" if enabled else "disable"


class AuditPolicy:
    """
    Audit policy changes through auditpol.exe.

    Usage:
        AuditPolicy().set_auditing("Certification Services", True, True)
    """

    def __init__(self, timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT):
        self.timeout = timeout

    def set_auditing(self, category: str, success: bool, failure: bool) -> str:
        """
        Enable or disable success/failure auditing for a subcategory.

        Returns:
            auditpol output

        Raises:
            AuditPolicyError: If auditpol fails or times out
        """
        cmd = [
            "auditpol",
            "/set",
            f"/subcategory:{category}",
            f"/success:{_flag(success)}",
            f"/failure:{_flag(failure)}",
        ]
        try:
            result = run_command(cmd, timeout=self.timeout)
        except CommandTimeoutError as e:
            raise AuditPolicyError(str(e)) from e

        output = combined_output(result)
        if result.returncode != 0:
            raise AuditPolicyError(f"auditpol failed for '{category}': {output}")

        logger.info(
            f"Auditing for '{category}': success={_flag(success)}, "
            f"failure={_flag(failure)}"
        )
        return output

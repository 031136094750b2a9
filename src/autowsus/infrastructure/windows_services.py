"""
Windows service control for the WSUS server.

Used to take the WSUS service offline while deep cleanup owns SUSDB.
"""

import logging

from autowsus.application.ports import ServiceController
from autowsus.infrastructure.powershell import PowerShellRunner, ps_quote

logger = logging.getLogger(__name__)


class PowerShellServiceController(ServiceController):
    """Start/stop services with Start-Service/Stop-Service and WaitForStatus."""

    def __init__(self, runner: PowerShellRunner | None = None):
        self.runner = runner or PowerShellRunner()

    def _change_state(self, service_name: str, verb: str, target: str, timeout_seconds: int) -> bool:
        name = ps_quote(service_name)
        script = f"""
$ErrorActionPreference = 'Stop'
$svc = Get-Service -Name {name}
if ($svc.Status -ne '{target}') {{
    {verb}-Service -Name {name}{' -Force' if verb == 'Stop' else ''}
    $svc.WaitForStatus('{target}', [TimeSpan]::FromSeconds({int(timeout_seconds)}))
}}
(Get-Service -Name {name}).Status.ToString()
"""
        result = self.runner.run(script, timeout=timeout_seconds + 30)
        if not result.success:
            logger.error("%s-Service %s failed: %s", verb, service_name, result.error_text())
            return False
        status = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
        if status != target:
            logger.warning("%s is %s, expected %s", service_name, status or "unknown", target)
            return False
        logger.info("%s is %s", service_name, target)
        return True

    def stop(self, service_name: str, timeout_seconds: int) -> bool:
        return self._change_state(service_name, "Stop", "Stopped", timeout_seconds)

    def start(self, service_name: str, timeout_seconds: int) -> bool:
        return self._change_state(service_name, "Start", "Running", timeout_seconds)

    def status(self, service_name: str) -> str:
        result = self.runner.run(
            f"(Get-Service -Name {ps_quote(service_name)} -ErrorAction Stop).Status.ToString()",
            timeout=60,
        )
        if not result.success:
            logger.debug("Get-Service %s failed: %s", service_name, result.error_text())
            return "NotFound"
        lines = result.stdout.strip().splitlines()
        return lines[-1].strip() if lines else "Unknown"

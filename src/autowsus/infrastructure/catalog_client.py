"""
WSUS catalog client over the UpdateServices administration API.

Each call runs a short PowerShell script that loads
Microsoft.UpdateServices.Administration, talks to the configured WSUS
server and returns JSON. Update ids are validated as GUIDs and every other
value is quoted before it is placed in a script.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from autowsus.application.ports import CatalogClient
from autowsus.domain.config.settings import CatalogSettings
from autowsus.domain.errors import CatalogConnectionError, CatalogError
from autowsus.domain.models import SyncResult, SyncStatus, UpdateClassification, UpdateRecord
from autowsus.infrastructure.powershell import CommandResult, PowerShellRunner, ps_quote

logger = logging.getLogger(__name__)

_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def parse_catalog_date(value: str | None) -> datetime | None:
    """Parse the UTC timestamps emitted by the scripts below."""
    if not value:
        return None
    try:
        return datetime.strptime(value, _DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def record_from_json(item: dict[str, Any]) -> UpdateRecord:
    """Build an UpdateRecord from one object of the GetUpdates script."""
    return UpdateRecord(
        id=str(item["Id"]),
        title=item.get("Title") or "",
        is_declined=bool(item.get("IsDeclined")),
        is_superseded=bool(item.get("IsSuperseded")),
        is_expired=bool(item.get("IsExpired")),
        release_date=parse_catalog_date(item.get("ReleaseDate")),
        classification=UpdateClassification.from_title(item.get("Classification")),
        has_install_approval=bool(item.get("HasInstallApproval")),
    )


class WsusCatalogClient(CatalogClient):
    """Catalog client backed by PowerShell and the WSUS admin assembly."""

    def __init__(self, settings: CatalogSettings, runner: PowerShellRunner | None = None):
        self.settings = settings
        self.runner = runner or PowerShellRunner(timeout=settings.powershell_timeout)

    # ========================================================================
    # Script plumbing
    # ========================================================================

    def _preamble(self) -> str:
        use_ssl = "$true" if self.settings.use_ssl else "$false"
        return (
            "$ErrorActionPreference = 'Stop'\n"
            "[void][reflection.assembly]::LoadWithPartialName('Microsoft.UpdateServices.Administration')\n"
            "$wsus = [Microsoft.UpdateServices.Administration.AdminProxy]::GetUpdateServer("
            f"{ps_quote(self.settings.server)}, {use_ssl}, {int(self.settings.port)})\n"
        )

    def _run(self, body: str, action: str) -> CommandResult:
        result = self.runner.run(self._preamble() + body)
        if not result.success:
            raise CatalogError(f"{action} failed: {result.error_text()}")
        return result

    def _run_json(self, body: str, action: str) -> Any:
        result = self._run(body, action)
        try:
            return result.parse_json()
        except ValueError as exc:
            raise CatalogError(f"{action} returned invalid JSON: {exc}") from exc

    @staticmethod
    def _guid(update_id: str) -> str:
        try:
            return str(uuid.UUID(str(update_id)))
        except ValueError as exc:
            raise CatalogError(f"Invalid update id: {update_id!r}") from exc

    # ========================================================================
    # CatalogClient
    # ========================================================================

    def connect(self) -> str:
        body = "[PSCustomObject]@{ Name = $wsus.Name; Version = $wsus.Version.ToString() } | ConvertTo-Json -Compress"
        try:
            data = self._run_json(body, "Connect")
        except CatalogError as exc:
            raise CatalogConnectionError(
                f"Cannot reach WSUS server {self.settings.server}:{self.settings.port}: {exc}"
            ) from exc
        description = f"{(data or {}).get('Name', self.settings.server)} {(data or {}).get('Version', '')}".strip()
        logger.info("Connected to WSUS server %s", description)
        return description

    def get_all_records(self) -> list[UpdateRecord]:
        group = ps_quote(self.settings.target_group)
        body = f"""
$group = $wsus.GetComputerTargetGroups() | Where-Object {{ $_.Name -eq {group} }} | Select-Object -First 1
$items = @($wsus.GetUpdates() | ForEach-Object {{
    $approved = $false
    if ($group) {{
        $approved = @($_.GetUpdateApprovals($group) | Where-Object {{ $_.Action -eq 'Install' }}).Count -gt 0
    }}
    [PSCustomObject]@{{
        Id = $_.Id.UpdateId.ToString()
        Title = $_.Title
        IsDeclined = $_.IsDeclined
        IsSuperseded = $_.IsSuperseded
        IsExpired = ($_.PublicationState.ToString() -eq 'Expired')
        ReleaseDate = $_.CreationDate.ToUniversalTime().ToString("yyyy-MM-dd'T'HH:mm:ss'Z'")
        Classification = $_.UpdateClassificationTitle
        HasInstallApproval = $approved
    }}
}})
ConvertTo-Json -InputObject $items -Depth 3 -Compress
"""
        data = self._run_json(body, "GetUpdates") or []
        if isinstance(data, dict):
            data = [data]
        records = [record_from_json(item) for item in data]
        logger.info("Fetched %d catalog entries", len(records))
        return records

    def decline(self, update_id: str) -> None:
        guid = self._guid(update_id)
        self._run(f"$wsus.GetUpdate([Guid]'{guid}').Decline()", f"Decline {guid}")

    def approve(self, update_id: str, target_group: str) -> None:
        guid = self._guid(update_id)
        body = f"""
$group = $wsus.GetComputerTargetGroups() | Where-Object {{ $_.Name -eq {ps_quote(target_group)} }} | Select-Object -First 1
if (-not $group) {{ throw ('Target group not found: ' + {ps_quote(target_group)}) }}
[void]$wsus.GetUpdate([Guid]'{guid}').Approve([Microsoft.UpdateServices.Administration.UpdateApprovalAction]::Install, $group)
"""
        self._run(body, f"Approve {guid}")

    def trigger_sync(self) -> None:
        self._run("$wsus.GetSubscription().StartSynchronization()", "Start synchronization")
        logger.info("Catalog synchronization started")

    def get_sync_status(self) -> SyncStatus:
        result = self._run("$wsus.GetSubscription().GetSynchronizationStatus().ToString()", "Get sync status")
        return SyncStatus.from_string(result.stdout.strip())

    def get_last_sync_result(self) -> SyncResult:
        body = """
$info = $wsus.GetSubscription().GetLastSynchronizationInfo()
[PSCustomObject]@{
    Result = $info.Result.ToString()
    NewUpdates = $info.NewUpdates
    RevisedUpdates = $info.RevisedUpdates
    Error = $info.ErrorText
} | ConvertTo-Json -Compress
"""
        data = self._run_json(body, "Get last sync result") or {}
        return SyncResult(
            result=data.get("Result") or "Unknown",
            new_count=int(data.get("NewUpdates") or 0),
            revised_count=int(data.get("RevisedUpdates") or 0),
            error=data.get("Error") or None,
        )

    def run_server_cleanup(self) -> dict[str, int]:
        body = """
$scope = New-Object Microsoft.UpdateServices.Administration.CleanupScope
$scope.CleanupObsoleteUpdates = $true
$scope.CleanupObsoleteComputers = $true
$scope.CleanupUnneededContentFiles = $true
$scope.CompressUpdates = $true
$r = $wsus.GetCleanupManager().PerformCleanup($scope)
[PSCustomObject]@{
    ObsoleteUpdatesDeleted = $r.ObsoleteUpdatesDeleted
    ObsoleteComputersDeleted = $r.ObsoleteComputersDeleted
    UpdatesCompressed = $r.UpdatesCompressed
    DiskSpaceFreed = $r.DiskSpaceFreed
} | ConvertTo-Json -Compress
"""
        data = self._run_json(body, "Server cleanup") or {}
        return {key: int(value or 0) for key, value in data.items()}

"""
AutoWsus - WSUS Maintenance Automation Tool.

Sequences the recurring maintenance of a WSUS server and its SUSDB database:
catalog sync, decline/approval policy, cleanup, deep purge, backup with
retention, and a dated differential export for disconnected sites.

Usage:
    # CLI (recommended)
    python main.py run --preset full --unattended

    # Programmatic
    from autowsus.application.container import Container
    from autowsus.domain.plan import build_plan, MaintenancePreset

    container = Container()
    run = container.pipeline.run(build_plan(MaintenancePreset.QUICK, unattended=True))
"""

__version__ = "0.1.0"
__author__ = "AutoWsus Team"

__all__ = ["__version__"]

"""
Infrastructure layer: SQL Server, PowerShell, file copy, reports, config
and logging adapters.
"""

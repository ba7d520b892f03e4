"""
winadmin - Windows administration reconcilers.

Configures a Root Certificate Authority's registry-backed settings with an
auditable backup, and synchronizes the Global Address List into the local
Outlook contacts folder.
"""

__version__ = "0.1.0"

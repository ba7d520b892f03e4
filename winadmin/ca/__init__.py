"""
winadmin.ca - Certificate Authority configuration

Settings definitions, certutil registry access, the configuration
reconciler, and the service/audit collaborators.
"""

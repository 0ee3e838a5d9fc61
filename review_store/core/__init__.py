"""
Core REVIEW_STORE components.

The schema provisioner that bootstraps the collections, the CRUD gateway
that guards every document operation, and the database copy utility.
"""

from .copier import copy_database
from .gateway import (
    DeleteOutcome,
    Gateway,
    InsertManyOutcome,
    InsertOneOutcome,
    UpdateOutcome,
    translate_error,
)
from .provisioner import ProvisioningReport, SchemaProvisioner

__all__ = [
    # Provisioner
    "SchemaProvisioner",
    "ProvisioningReport",
    # Gateway
    "Gateway",
    "InsertOneOutcome",
    "InsertManyOutcome",
    "UpdateOutcome",
    "DeleteOutcome",
    "translate_error",
    # Copy
    "copy_database",
]

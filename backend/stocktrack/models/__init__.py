from .inventory import Unit, UnitAssignment, UNIT_STATUSES, UNIT_KINDS
from .sales import Sale
from .documents import DocumentSequence
from .approvals import PendingUpdate, DECISIONS

__all__ = [
    'Unit', 'UnitAssignment', 'UNIT_STATUSES', 'UNIT_KINDS',
    'Sale',
    'DocumentSequence',
    'PendingUpdate', 'DECISIONS',
]

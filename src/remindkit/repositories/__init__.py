"""Repository classes for the remindkit persistence layer.

Each repository extends :class:`pypgkit.BaseRepository` with the
queries the scheduler needs.  Connectivity failures surface as
:class:`remindkit.core.errors.RepositoryUnavailable`.
"""

from remindkit.repositories.appointment import AppointmentRepository
from remindkit.repositories.automation import AutomationSettingRepository
from remindkit.repositories.delivery import DeliveryRecordRepository
from remindkit.repositories.tenant import TenantRepository

__all__ = [
    "AppointmentRepository",
    "AutomationSettingRepository",
    "DeliveryRecordRepository",
    "TenantRepository",
]

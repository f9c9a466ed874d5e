"""Entity models for the remindkit persistence layer.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from remindkit.models.appointment import Appointment
from remindkit.models.automation import AutomationSetting
from remindkit.models.delivery import DeliveryRecord
from remindkit.models.tenant import Tenant

__all__ = [
    "Appointment",
    "AutomationSetting",
    "DeliveryRecord",
    "Tenant",
]

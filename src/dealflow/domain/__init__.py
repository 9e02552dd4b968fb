from dealflow.domain.models import Activity, Contact, Deal, Task
from dealflow.domain.rules import Conflict, CrmError, InvalidArgument, NotFound, ServerError

__all__ = [
    "Activity",
    "Conflict",
    "Contact",
    "CrmError",
    "Deal",
    "InvalidArgument",
    "NotFound",
    "ServerError",
    "Task",
]

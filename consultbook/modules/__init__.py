"""Domain modules package."""

from consultbook.modules.audit import models as audit_models  # noqa: F401
from consultbook.modules.booking import models as booking_models  # noqa: F401
from consultbook.modules.experts import models as experts_models  # noqa: F401
from consultbook.modules.scheduling import models as scheduling_models  # noqa: F401

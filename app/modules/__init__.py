"""Domain modules package."""

from app.modules.audit import models as audit_models  # noqa: F401
from app.modules.booking import models as booking_models  # noqa: F401
from app.modules.completion import models as completion_models  # noqa: F401
from app.modules.deposits import models as deposits_models  # noqa: F401
from app.modules.remainder import models as remainder_models  # noqa: F401
from app.modules.scheduler import models as scheduler_models  # noqa: F401

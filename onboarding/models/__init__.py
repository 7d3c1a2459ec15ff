from onboarding.models.base import Base  # noqa: F401

from onboarding.models.pending_lead import PendingLead  # noqa: F401
from onboarding.models.vendor import Vendor  # noqa: F401
from onboarding.models.gig import Gig  # noqa: F401
from onboarding.models.audit_log import AuditLog  # noqa: F401

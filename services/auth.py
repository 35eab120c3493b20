"""Owner resolution. Stands in for a real auth/session layer."""
import logging
from typing import Optional

from services.errors import Unauthenticated

logger = logging.getLogger(__name__)

OWNER_HEADER = "X-Owner-Id"


def resolve_owner(header_value: Optional[str], default_owner_id: Optional[str] = None) -> str:
    """
    Returns the caller's owner id from the request header, falling back to the
    configured placeholder owner. Raises Unauthenticated when neither is set.
    """
    owner_id = (header_value or "").strip() or (default_owner_id or "").strip()
    if not owner_id:
        logger.warning(f"Request without {OWNER_HEADER} header and no default owner configured.")
        raise Unauthenticated("No owner identity could be resolved for this request.")
    return owner_id

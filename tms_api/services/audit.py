# tms_api/services/audit.py
import logging
from typing import Any, Dict, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from tms_api.data.store import AUDIT_LOGS, utcnow

logger = logging.getLogger(__name__)


def log_audit_action(
    db: Database,
    target_user_id: str,
    action: str,
    changed_by: Dict[str, str],
    details: Optional[Dict[str, Any]] = None,
):
    # The audited change has already been written; a missing log entry must not undo it.
    try:
        db[AUDIT_LOGS].insert_one({
            "targetUserId": target_user_id,
            "action": action,
            "changedBy": changed_by,
            "details": details or {},
            "timestamp": utcnow(),
        })
    except PyMongoError as e:
        logger.error(f"Failed to write audit log '{action}' for user {target_user_id}: {e}", exc_info=True)

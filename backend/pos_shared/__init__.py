"""
Shared module for common utilities across the REST API and the WS gateway.

STRUCTURE:
- pos_shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Roles, order/table states, transition table

- pos_shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions, safe_commit()
  - events/: Redis pub/sub, order broadcast publishing

- pos_shared.security: Authentication glue
  - auth.py: JWT signing/verification, current_user_context, require_roles
  - password.py: Bcrypt hashing
  - rate_limit.py: Login rate limiting (slowapi)

- pos_shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from pos_shared.security.auth import verify_jwt, current_user_context
    from pos_shared.infrastructure.db import get_db, safe_commit
    from pos_shared.config.settings import settings
    from pos_shared.config.constants import Roles, OrderStatus
    from pos_shared.utils.exceptions import NotFoundError, ForbiddenError
"""

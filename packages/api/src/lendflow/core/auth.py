# This project was developed with assistance from AI tools.
"""Pure auth utility functions with no FastAPI or HTTP dependencies.

Kept apart from ``middleware/auth.py`` so services and tests can build a
``UserContext`` without pulling in Starlette.
"""

from lendflow_db.enums import UserRole

from ..schemas.auth import DataScope


def build_data_scope(role: UserRole, user_id: str) -> DataScope:
    """Build loan visibility rules based on the user's role."""
    match role:
        case UserRole.MERCHANT:
            return DataScope(submitted_by=user_id)
        case UserRole.CUSTOMER:
            return DataScope(applicant_id=user_id)
        case UserRole.BANKER:
            return DataScope(assigned_to=user_id)
        case UserRole.ADMIN:
            return DataScope(full_pipeline=True)
    return DataScope()

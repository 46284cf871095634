# This project was developed with assistance from AI tools.
"""Persona factories for tests.

Each function returns a UserContext matching the DataScope built by
``core/auth.py:build_data_scope()`` for that role. Fixed user IDs ensure
cross-test consistency and match the rows created by ``tests/seed.py``.
"""

from lendflow_db.enums import UserRole

from lendflow.core.auth import build_data_scope
from lendflow.schemas.auth import UserContext

# Fixed IDs for cross-test referencing
MERCHANT_USER_ID = "priya-traders-merchant"
OTHER_MERCHANT_USER_ID = "kiran-motors-merchant"
CUSTOMER_USER_ID = "arjun-rao-customer"
OTHER_CUSTOMER_USER_ID = "meera-nair-customer"
BANKER_USER_ID = "ravi-kumar-banker"
OTHER_BANKER_USER_ID = "sunita-das-banker"
ADMIN_USER_ID = "admin-user"


def _persona(user_id: str, role: UserRole, email: str, name: str) -> UserContext:
    return UserContext(
        user_id=user_id,
        role=role,
        email=email,
        name=name,
        data_scope=build_data_scope(role, user_id),
    )


def merchant() -> UserContext:
    return _persona(MERCHANT_USER_ID, UserRole.MERCHANT, "priya@traders.example", "Priya Traders")


def other_merchant() -> UserContext:
    return _persona(
        OTHER_MERCHANT_USER_ID, UserRole.MERCHANT, "kiran@motors.example", "Kiran Motors"
    )


def customer() -> UserContext:
    return _persona(CUSTOMER_USER_ID, UserRole.CUSTOMER, "arjun@example.com", "Arjun Rao")


def other_customer() -> UserContext:
    return _persona(OTHER_CUSTOMER_USER_ID, UserRole.CUSTOMER, "meera@example.com", "Meera Nair")


def banker() -> UserContext:
    return _persona(BANKER_USER_ID, UserRole.BANKER, "ravi@bank.example", "Ravi Kumar")


def other_banker() -> UserContext:
    return _persona(OTHER_BANKER_USER_ID, UserRole.BANKER, "sunita@bank.example", "Sunita Das")


def admin() -> UserContext:
    return _persona(ADMIN_USER_ID, UserRole.ADMIN, "admin@lendflow.example", "Admin User")

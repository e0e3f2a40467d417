"""
Unit tests build ORM objects without an app or database. Importing every
model module up front lets SQLAlchemy resolve string relationships the
first time a mapped class is instantiated.
"""

from backend.app.models import (  # noqa: F401
    friend,
    group,
    group_balance,
    group_join_link,
    membership,
    refresh_token,
    tag,
    transaction,
    transaction_balance,
    transaction_draft,
    user,
)

"""Patient profile model definition using SQLAlchemy Core.

Rows are written by the identity provider; this service only reads them.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

profiles = Table(
    "profiles",
    metadata,
    # Same id as the identity provider's user
    Column("id", Uuid, primary_key=True),
    # Personal info
    Column("first_name", Text),
    Column("last_name", Text),
    Column("email", Text, index=True),
    Column("sex", String(10)),
    Column("age", Integer),
    Column("phone_number", String(30)),
    Column("clinical_notes", Text),
    # Authorization
    Column("role", Text, nullable=False, server_default=text("'patient'")),
    # Audit
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint("role IN ('patient', 'staff', 'admin')", name="profiles_role_check"),
    CheckConstraint("sex IS NULL OR sex IN ('male', 'female', 'other')", name="profiles_sex_check"),
)

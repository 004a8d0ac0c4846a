"""Initial loan portal schema"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        server_onupdate=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=10), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=10), nullable=False, server_default="user"),
        sa.Column("bank_name", sa.String(length=10), nullable=True),
        sa.Column("dsa_id", sa.String(length=20), nullable=True),
        sa.Column("specialization", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _uuid("verified_by", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_login_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("profile_picture_url", sa.String(length=1024), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("aadhar_number", sa.Text(), nullable=True),
        sa.Column("pan_number", sa.Text(), nullable=True),
        sa.Column("current_institution", sa.String(length=255), nullable=True),
        sa.Column("course", sa.String(length=255), nullable=True),
        sa.Column("course_duration", sa.String(length=50), nullable=True),
        sa.Column("fee_structure", sa.Numeric(14, 2), nullable=True),
        sa.Column("admission_date", sa.Date(), nullable=True),
        sa.Column("annual_income", sa.Numeric(14, 2), nullable=True),
        sa.Column("employment_type", sa.String(length=50), nullable=True),
        sa.Column("employer_name", sa.String(length=255), nullable=True),
        sa.Column("work_experience", sa.String(length=50), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("phone", name="uq_users_phone"),
        sa.UniqueConstraint("dsa_id", name="uq_users_dsa_id"),
        sa.CheckConstraint("role IN ('admin', 'dsa', 'user')", name="ck_users_role"),
        sa.CheckConstraint(
            "bank_name IS NULL OR bank_name IN ('SBI', 'HDFC', 'ICICI', 'AXIS', 'KOTAK')",
            name="ck_users_bank_name",
        ),
        sa.CheckConstraint("role != 'dsa' OR bank_name IS NOT NULL", name="ck_users_dsa_bank"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_bank_name", "users", ["bank_name"])

    op.create_table(
        "loan_applications",
        _uuid("id", primary_key=True),
        sa.Column("application_number", sa.String(length=20), nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("loan_type", sa.String(length=30), nullable=False, server_default="education"),
        sa.Column("personal_details", sa.JSON(), nullable=False),
        sa.Column("loan_details", sa.JSON(), nullable=False),
        sa.Column("education_details", sa.JSON(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="low"),
        sa.Column("required_documents", sa.JSON(), nullable=False),
        _uuid("dsa_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("review_deadline", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("final_approval_threshold", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("application_number", name="uq_loan_applications_number"),
        sa.CheckConstraint(
            "status IN ('pending', 'under_review', 'approved', 'rejected', 'partially_approved')",
            name="ck_loan_app_status",
        ),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_loan_app_priority"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_loan_app_payment_status",
        ),
        sa.CheckConstraint("amount >= 10000", name="ck_loan_app_min_amount"),
        sa.CheckConstraint("final_approval_threshold BETWEEN 1 AND 5", name="ck_loan_app_threshold_range"),
        sa.CheckConstraint("version >= 1", name="ck_loan_app_version_positive"),
    )
    op.create_index("ix_loan_applications_user_id", "loan_applications", ["user_id"])
    op.create_index("ix_loan_applications_dsa_id", "loan_applications", ["dsa_id"])
    op.create_index("ix_loan_applications_status", "loan_applications", ["status"])
    op.create_index("ix_loan_applications_review_deadline", "loan_applications", ["review_deadline"])
    op.create_index("ix_loan_applications_created_at", "loan_applications", ["created_at"])

    op.create_table(
        "loan_application_status_history",
        _uuid("id", primary_key=True),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        _uuid("updated_by", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_loan_application_status_history_loan_application_id",
        "loan_application_status_history",
        ["loan_application_id"],
    )

    op.create_table(
        "loan_application_assignments",
        _uuid("id", primary_key=True),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False),
        _uuid("dsa_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _uuid("assigned_by", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("loan_application_id", "dsa_id", name="uq_loan_app_assignment"),
    )
    op.create_index(
        "ix_loan_application_assignments_loan_application_id",
        "loan_application_assignments",
        ["loan_application_id"],
    )
    op.create_index("ix_loan_application_assignments_dsa_id", "loan_application_assignments", ["dsa_id"])

    op.create_table(
        "dsa_reviews",
        _uuid("id", primary_key=True),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False),
        _uuid("dsa_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("documents_reviewed", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("risk_assessment", sa.JSON(), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("loan_application_id", "dsa_id", name="uq_dsa_review_per_application"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_dsa_review_status"),
    )
    op.create_index("ix_dsa_reviews_loan_application_id", "dsa_reviews", ["loan_application_id"])
    op.create_index("ix_dsa_reviews_dsa_id", "dsa_reviews", ["dsa_id"])

    op.create_table(
        "loan_documents",
        _uuid("id", primary_key=True),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False),
        _uuid("uploaded_by", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("document_type", sa.String(length=30), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("storage_provider", sa.String(length=32), nullable=False, server_default="local"),
        sa.Column("storage_key", sa.String(length=1024), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="uploaded"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("uploaded_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "document_type IN ('profile_picture', 'aadhar_card', 'pan_card', 'income_certificate', "
            "'bank_statement', 'admission_letter', 'fee_structure', 'chat_files', 'other')",
            name="ck_loan_document_type",
        ),
        sa.CheckConstraint(
            "status IN ('uploaded', 'processing', 'approved', 'rejected')",
            name="ck_loan_document_status",
        ),
    )
    op.create_index("ix_loan_documents_loan_application_id", "loan_documents", ["loan_application_id"])
    op.create_index("ix_loan_documents_app_deleted", "loan_documents", ["loan_application_id", "is_deleted"])

    op.create_table(
        "chats",
        _uuid("id", primary_key=True),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participants", sa.JSON(), nullable=False),
        sa.Column("participant_key", sa.String(length=1024), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_message_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_chats_loan_application_id", "chats", ["loan_application_id"])

    op.create_table(
        "chat_messages",
        _uuid("id", primary_key=True),
        _uuid("chat_id", sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
        _uuid("sender_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(length=10), nullable=False, server_default="text"),
        sa.Column("file_url", sa.String(length=1024), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_by", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("message_type IN ('text', 'file', 'image')", name="ck_chat_message_type"),
    )
    op.create_index("ix_chat_messages_chat_created", "chat_messages", ["chat_id", "created_at"])

    op.create_table(
        "support_tickets",
        _uuid("id", primary_key=True),
        sa.Column("ticket_number", sa.String(length=20), nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        _uuid("assigned_to", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _uuid("resolved_by", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("ticket_number", name="uq_support_tickets_number"),
        sa.CheckConstraint(
            "category IN ('technical', 'loan_inquiry', 'document', 'general')",
            name="ck_support_ticket_category",
        ),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high', 'urgent')", name="ck_support_ticket_priority"),
        sa.CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="ck_support_ticket_status",
        ),
    )
    op.create_index("ix_support_tickets_user_id", "support_tickets", ["user_id"])
    op.create_index("ix_support_tickets_status", "support_tickets", ["status"])
    op.create_index("ix_support_tickets_assigned_to", "support_tickets", ["assigned_to"])

    op.create_table(
        "support_ticket_responses",
        _uuid("id", primary_key=True),
        _uuid("ticket_id", sa.ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_support_ticket_responses_ticket_id", "support_ticket_responses", ["ticket_id"])

    op.create_table(
        "dsa_activities",
        _uuid("id", primary_key=True),
        _uuid("dsa_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("activity_type", sa.String(length=30), nullable=False),
        _uuid("loan_application_id", sa.ForeignKey("loan_applications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        _created_at(),
        sa.CheckConstraint(
            "activity_type IN ('login', 'application_review', 'application_approve', 'application_reject')",
            name="ck_dsa_activity_type",
        ),
    )
    op.create_index("ix_dsa_activities_dsa_id", "dsa_activities", ["dsa_id"])
    op.create_index("ix_dsa_activities_created_at", "dsa_activities", ["created_at"])

    op.create_table(
        "system_logs",
        _uuid("id", primary_key=True),
        sa.Column("level", sa.String(length=10), nullable=False),
        sa.Column("message", sa.String(length=1000), nullable=False),
        sa.Column("context", sa.JSON(), nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _created_at(),
        sa.CheckConstraint("level IN ('error', 'warn', 'info', 'debug')", name="ck_system_log_level"),
    )
    op.create_index("ix_system_logs_level", "system_logs", ["level"])
    op.create_index("ix_system_logs_created_at", "system_logs", ["created_at"])

    op.create_table(
        "audit_logs",
        _uuid("id", primary_key=True),
        _uuid("actor_id", nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=100), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.String(length=500), nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "system_logs",
        "dsa_activities",
        "support_ticket_responses",
        "support_tickets",
        "chat_messages",
        "chats",
        "loan_documents",
        "dsa_reviews",
        "loan_application_assignments",
        "loan_application_status_history",
        "loan_applications",
        "users",
    ):
        op.drop_table(table)

"""Initial schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19 00:00:00

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _text_array() -> postgresql.ARRAY:
    return postgresql.ARRAY(sa.Text())


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "source_documents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("organization", sa.String(length=50), nullable=False),
        sa.Column("url", sa.String(length=1000)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=50)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "example_inputs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("expected_severity", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "analyses",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("input_type", sa.String(length=10), nullable=False),
        sa.Column("input_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("input_url", sa.String(length=2000)),
        sa.Column("region", sa.String(length=10), nullable=False, server_default="WHO"),
        sa.Column("tone", sa.String(length=20), nullable=False, server_default="neutral"),
        sa.Column("audience", sa.String(length=20), nullable=False, server_default="general"),
        sa.Column("platform", sa.String(length=20), nullable=False, server_default="general"),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("current_step", sa.String(length=20)),
        sa.Column("completed_steps", _text_array(), nullable=False, server_default="{}"),
        sa.Column("overall_severity", sa.String(length=20)),
        sa.Column("red_flags_detected", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("red_flags", _text_array(), nullable=False, server_default="{}"),
        sa.Column("topics", _text_array(), nullable=False, server_default="{}"),
        sa.Column("disclaimer", sa.Text()),
        sa.Column("what_is_wrong", sa.Text()),
        sa.Column("what_we_know", sa.Text()),
        sa.Column("what_to_do", sa.Text()),
        sa.Column("when_to_seek_care", sa.Text()),
        sa.Column("uncertainty_notes", sa.Text()),
        sa.Column("error_message", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'error', 'done')",
            name="valid_status",
        ),
        sa.CheckConstraint("input_type IN ('text', 'url')", name="valid_input_type"),
    )

    op.create_table(
        "claims",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("analysis_id", sa.UUID(), sa.ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("claim_text", sa.Text(), nullable=False),
        sa.Column("claim_type", sa.String(length=30), nullable=False),
        sa.Column("topic", sa.String(length=50)),
        sa.Column("target_population", sa.String(length=30), nullable=False, server_default="general"),
        sa.Column("urgency_hint", sa.String(length=10), nullable=False, server_default="none"),
        sa.Column("potential_harm", sa.String(length=10), nullable=False, server_default="low"),
        sa.Column("certainty_in_text", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("stance", sa.String(length=20)),
        sa.Column("stance_confidence", sa.Integer()),
        sa.Column("stance_explanation", sa.Text()),
        sa.Column("severity", sa.String(length=20)),
        sa.Column("risk_reason", sa.Text()),
        sa.Column("risk_tags", _text_array(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "citations",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("claim_id", sa.UUID(), sa.ForeignKey("claims.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("source_org", sa.String(length=50), nullable=False),
        sa.Column("source_title", sa.String(length=500), nullable=False),
        sa.Column("source_url", sa.String(length=1000)),
        sa.Column("snippet", sa.Text()),
        sa.Column("relevance", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "generated_outputs",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("analysis_id", sa.UUID(), sa.ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("format", sa.String(length=20), nullable=False),
        sa.Column("length", sa.String(length=10), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("analysis_id", "format", "length", name="uq_outputs_variant"),
    )

    op.create_table(
        "feedback",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("analysis_id", sa.UUID(), sa.ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.String(length=20), nullable=False),
        sa.Column("comment", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "rating IN ('helpful', 'not_helpful', 'missing_sources')",
            name="valid_rating",
        ),
    )

    op.create_index("idx_analyses_status", "analyses", ["status"])
    op.create_index("idx_analyses_created_at", "analyses", ["created_at"], postgresql_using="btree")
    op.create_index("idx_claims_analysis_id", "claims", ["analysis_id", "position"])
    op.create_index("idx_citations_claim_id", "citations", ["claim_id", "position"])
    op.create_index("idx_outputs_analysis_id", "generated_outputs", ["analysis_id", "position"])
    op.create_index("idx_feedback_analysis_id", "feedback", ["analysis_id"])


def downgrade() -> None:
    op.drop_index("idx_feedback_analysis_id", table_name="feedback")
    op.drop_index("idx_outputs_analysis_id", table_name="generated_outputs")
    op.drop_index("idx_citations_claim_id", table_name="citations")
    op.drop_index("idx_claims_analysis_id", table_name="claims")
    op.drop_index("idx_analyses_created_at", table_name="analyses")
    op.drop_index("idx_analyses_status", table_name="analyses")

    op.drop_table("feedback")
    op.drop_table("generated_outputs")
    op.drop_table("citations")
    op.drop_table("claims")
    op.drop_table("analyses")
    op.drop_table("example_inputs")
    op.drop_table("source_documents")

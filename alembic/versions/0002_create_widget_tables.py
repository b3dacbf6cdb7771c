"""create widget catalogue tables

Revision ID: 0002_create_widget_tables
Revises: 0001_create_app_tables
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_create_widget_tables"
down_revision = "0001_create_app_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "widgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("key", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("script_url", sa.String(length=500), nullable=False),
        sa.Column("container_element_id", sa.String(length=100), nullable=False),
        sa.Column("global_name", sa.String(length=100), nullable=True),
        sa.Column("preview_url", sa.String(length=500), nullable=True),
        sa.Column("stored_procedure", sa.String(length=150), nullable=True),
        sa.Column("template_url", sa.String(length=500), nullable=True),
        sa.Column("allowed_params", sa.JSON(), nullable=True),
        sa.Column("requires_user", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cache_data", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_widgets_key", "widgets", ["key"], unique=True)

    op.create_table(
        "widget_fields",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("widget_id", sa.Integer(), sa.ForeignKey("widgets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("field_key", sa.String(length=50), nullable=False),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("field_type", sa.String(length=20), nullable=False),
        sa.Column("placeholder", sa.String(length=255), nullable=True),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("data_source_type", sa.String(length=20), nullable=True),
        sa.Column("data_source_config", sa.JSON(), nullable=True),
        sa.Column("data_param_mapping", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_widget_fields_widget_id", "widget_fields", ["widget_id"])
    op.create_index("ix_widget_fields_field_key", "widget_fields", ["field_key"])

    op.create_table(
        "widget_url_parameters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("widget_id", sa.Integer(), sa.ForeignKey("widgets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("parameter_key", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("example_value", sa.String(length=255), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_widget_url_parameters_widget_id", "widget_url_parameters", ["widget_id"])


def downgrade() -> None:
    op.drop_index("ix_widget_url_parameters_widget_id", table_name="widget_url_parameters")
    op.drop_table("widget_url_parameters")
    op.drop_index("ix_widget_fields_field_key", table_name="widget_fields")
    op.drop_index("ix_widget_fields_widget_id", table_name="widget_fields")
    op.drop_table("widget_fields")
    op.drop_index("ix_widgets_key", table_name="widgets")
    op.drop_table("widgets")

"""Create outage staging and fact tables

Revision ID: fta_001
Revises:
Create Date: 2026-10-19

Tables added:
- sta.cutting_down_cabin
- sta.cutting_down_cable
- fta.channel
- fta.network_element_type
- fta.network_element
- fta.cutting_down_header
- fta.cutting_down_detail
- sp_create / sp_close procedures (names and schemas from settings)
"""

from alembic import op
import sqlalchemy as sa

from outage_sync.config import settings
from outage_sync.sync.procedures import (
    close_procedure_ddl,
    create_procedure_ddl,
    drop_procedure_ddl,
)

# revision identifiers, used by Alembic.
revision = 'fta_001'
down_revision = None
branch_labels = None
depends_on = None


def _staging_columns():
    return [
        sa.Column('incident_id', sa.Integer(), nullable=False, autoincrement=False),
        sa.Column('element_name', sa.String(100), nullable=True),
        sa.Column('problem_type_key', sa.Integer(), nullable=True),
        sa.Column('create_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_planned', sa.Boolean(), nullable=True),
        sa.Column('is_global', sa.Boolean(), nullable=True),
        sa.Column('planned_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('planned_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_user', sa.String(50), nullable=True),
        sa.Column('updated_user', sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint('incident_id'),
    ]


def upgrade() -> None:
    for schema in (settings.staging_db_schema, settings.fact_db_schema):
        op.execute(f'CREATE SCHEMA IF NOT EXISTS "{schema}"')

    # staging feeds
    op.create_table('cutting_down_cabin', *_staging_columns(), schema='sta')
    op.create_table('cutting_down_cable', *_staging_columns(), schema='sta')

    # reference tables
    op.create_table(
        'channel',
        sa.Column('channel_key', sa.Integer(), nullable=False, autoincrement=False),
        sa.Column('channel_name', sa.String(50), nullable=False),
        sa.PrimaryKeyConstraint('channel_key'),
        schema='fta'
    )
    op.create_table(
        'network_element_type',
        sa.Column('type_key', sa.Integer(), nullable=False, autoincrement=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('parent_type_key', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['parent_type_key'], ['fta.network_element_type.type_key']),
        sa.PrimaryKeyConstraint('type_key'),
        schema='fta'
    )
    op.create_table(
        'network_element',
        sa.Column('element_key', sa.Integer(), nullable=False, autoincrement=False),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('type_key', sa.Integer(), nullable=False),
        sa.Column('parent_key', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['type_key'], ['fta.network_element_type.type_key']),
        sa.ForeignKeyConstraint(['parent_key'], ['fta.network_element.element_key']),
        sa.PrimaryKeyConstraint('element_key'),
        schema='fta'
    )
    op.create_index('ix_fta_network_element_type_key', 'network_element', ['type_key'], schema='fta')
    op.create_index('ix_fta_network_element_parent_key', 'network_element', ['parent_key'], schema='fta')

    # fact tables
    op.create_table(
        'cutting_down_header',
        sa.Column('header_key', sa.Integer(), nullable=False, autoincrement=False),
        sa.Column('incident_id', sa.Integer(), nullable=False),
        sa.Column('channel_key', sa.Integer(), nullable=False),
        sa.Column('problem_type_key', sa.Integer(), nullable=True),
        sa.Column('actual_create_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('synch_create_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('synch_update_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_planned', sa.Boolean(), nullable=True),
        sa.Column('is_global', sa.Boolean(), nullable=True),
        sa.Column('planned_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('planned_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('create_user_id', sa.Integer(), nullable=True),
        sa.Column('update_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['channel_key'], ['fta.channel.channel_key']),
        sa.PrimaryKeyConstraint('header_key'),
        schema='fta'
    )
    op.create_index(
        'ix_fta_cutting_down_header_channel_incident', 'cutting_down_header',
        ['channel_key', 'incident_id'], schema='fta'
    )

    op.create_table(
        'cutting_down_detail',
        sa.Column('detail_key', sa.Integer(), nullable=False, autoincrement=False),
        sa.Column('header_key', sa.Integer(), nullable=False),
        sa.Column('network_element_key', sa.Integer(), nullable=True),
        sa.Column('actual_create_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('impacted_customers', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['header_key'], ['fta.cutting_down_header.header_key']),
        sa.ForeignKeyConstraint(['network_element_key'], ['fta.network_element.element_key']),
        sa.PrimaryKeyConstraint('detail_key'),
        schema='fta'
    )
    op.create_index(
        'ix_fta_cutting_down_detail_header_network', 'cutting_down_detail',
        ['header_key', 'network_element_key'], schema='fta'
    )

    # create/close procedures for stored mode
    op.execute(create_procedure_ddl(
        settings.create_procedure_name, settings.staging_db_schema, settings.fact_db_schema
    ))
    op.execute(close_procedure_ddl(
        settings.close_procedure_name, settings.staging_db_schema, settings.fact_db_schema
    ))


def downgrade() -> None:
    op.execute(drop_procedure_ddl(settings.close_procedure_name))
    op.execute(drop_procedure_ddl(settings.create_procedure_name))
    op.drop_table('cutting_down_detail', schema='fta')
    op.drop_table('cutting_down_header', schema='fta')
    op.drop_table('network_element', schema='fta')
    op.drop_table('network_element_type', schema='fta')
    op.drop_table('channel', schema='fta')
    op.drop_table('cutting_down_cable', schema='sta')
    op.drop_table('cutting_down_cabin', schema='sta')

"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('role_id IN (1, 2, 3, 4)', name='chk_user_role_id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role_id', 'users', ['role_id'])
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    op.create_table(
        'incidents',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        # 1st info
        sa.Column('creation_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('organization', sa.Integer(), nullable=False),
        sa.Column('creator', sa.Integer(), nullable=False),
        sa.Column('occurrence_datetime', sa.DateTime(timezone=True), nullable=False),
        sa.Column('occurrence_location', sa.Integer(), nullable=False),
        sa.Column('shipping_warehouse', sa.Integer(), nullable=False),
        sa.Column('shipping_company', sa.Integer(), nullable=False),
        sa.Column('trouble_category', sa.Integer(), nullable=False),
        sa.Column('trouble_detail_category', sa.Integer(), nullable=False),
        sa.Column('details', sa.String(2000), nullable=False),
        sa.Column('voucher_number', sa.String(50), nullable=True),
        sa.Column('customer_code', sa.String(50), nullable=True),
        sa.Column('product_code', sa.String(50), nullable=True),
        sa.Column('quantity', sa.Numeric(18, 2), nullable=True),
        sa.Column('unit', sa.Integer(), nullable=True),
        # 2nd info
        sa.Column('input_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('process_description', sa.String(2000), nullable=True),
        sa.Column('cause', sa.String(2000), nullable=True),
        sa.Column('photo_data_uri', sa.String(500), nullable=True),
        # 3rd info
        sa.Column('input_date3', sa.DateTime(timezone=True), nullable=True),
        sa.Column('recurrence_prevention_measures', sa.String(2000), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='SecondInfoInvestigation'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_incidents_creation_date', 'incidents', ['creation_date'])
    op.create_index('ix_incidents_organization', 'incidents', ['organization'])
    op.create_index('ix_incidents_occurrence_datetime', 'incidents', ['occurrence_datetime'])
    op.create_index('ix_incidents_shipping_warehouse', 'incidents', ['shipping_warehouse'])
    op.create_index('ix_incidents_shipping_company', 'incidents', ['shipping_company'])
    op.create_index('ix_incidents_trouble_category', 'incidents', ['trouble_category'])
    op.execute("CREATE INDEX idx_incidents_occurrence_desc ON incidents (occurrence_datetime DESC)")

    op.create_table(
        'incident_files',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('incident_id', sa.Integer(), sa.ForeignKey('incidents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('info_level', sa.Integer(), nullable=False),
        sa.Column('file_data_uri', sa.Text(), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_type', sa.String(100), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('info_level IN (1, 2)', name='chk_incident_file_info_level'),
        sa.CheckConstraint('file_size >= 0', name='chk_incident_file_size_non_negative'),
    )
    op.create_index('ix_incident_files_incident_id', 'incident_files', ['incident_id'])
    op.create_index('idx_incident_files_incident_level', 'incident_files', ['incident_id', 'info_level'])

    system_parameters = op.create_table(
        'system_parameters',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('parameter_key', sa.String(100), nullable=False),
        sa.Column('parameter_value', sa.String(500), nullable=False),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('data_type', sa.String(50), nullable=False, server_default='string'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('updated_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.CheckConstraint(
            "data_type IN ('string', 'int', 'bool', 'decimal')",
            name='chk_system_parameter_data_type',
        ),
        sa.UniqueConstraint('parameter_key', name='uq_system_parameter_key'),
    )

    op.bulk_insert(
        system_parameters,
        [
            {
                'name': '2次情報期限日数',
                'parameter_key': 'SECOND_INFO_DEADLINE_DAYS',
                'parameter_value': '7',
                'description': '1次情報の作成日から2次情報入力までの期限日数',
                'data_type': 'int',
                'is_active': True,
            },
            {
                'name': '3次情報期限日数',
                'parameter_key': 'THIRD_INFO_DEADLINE_DAYS',
                'parameter_value': '7',
                'description': '2次情報の入力日から3次情報入力までの期限日数',
                'data_type': 'int',
                'is_active': True,
            },
        ],
    )


def downgrade() -> None:
    op.drop_table('system_parameters')
    op.drop_index('idx_incident_files_incident_level', table_name='incident_files')
    op.drop_index('ix_incident_files_incident_id', table_name='incident_files')
    op.drop_table('incident_files')
    op.execute("DROP INDEX IF EXISTS idx_incidents_occurrence_desc")
    op.drop_table('incidents')
    op.drop_table('users')

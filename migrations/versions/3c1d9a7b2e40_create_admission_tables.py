"""Create patients, appointments and appointment_history tables

Revision ID: 3c1d9a7b2e40
Revises:
Create Date: 2026-10-18 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c1d9a7b2e40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'patients',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('gender', sa.String(length=20), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('principal_diagnosis', sa.String(length=100), nullable=True),
        sa.Column('registration_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='PENDIENTE DE CONSULTA'),
        sa.Column('creation_source', sa.String(length=40), nullable=True, server_default='admission'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    with op.batch_alter_table('patients', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_patients_birth_date'), ['birth_date'], unique=False)
        batch_op.create_index('ix_patients_name_birth_date', ['first_name', 'last_name', 'birth_date'], unique=False)

    op.create_table(
        'appointments',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('patient_id', sa.String(length=36), sa.ForeignKey('patients.id'), nullable=False),
        sa.Column('doctor_id', sa.String(length=36), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('reasons', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PROGRAMADA'),
        sa.Column('is_first_visit', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    with op.batch_alter_table('appointments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_appointments_patient_id'), ['patient_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_doctor_id'), ['doctor_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_scheduled_at'), ['scheduled_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_status'), ['status'], unique=False)

    # One active booking per doctor and instant; cancelled rows free the slot
    op.create_index(
        'uq_appointments_doctor_slot_active',
        'appointments',
        ['doctor_id', 'scheduled_at'],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELADA'"),
        sqlite_where=sa.text("status <> 'CANCELADA'"),
    )

    op.create_table(
        'appointment_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('appointment_id', sa.String(length=36), sa.ForeignKey('appointments.id'), nullable=False),
        sa.Column('field_changed', sa.String(length=32), nullable=False),
        sa.Column('value_before', sa.String(length=64), nullable=True),
        sa.Column('value_after', sa.String(length=64), nullable=False),
        sa.Column('change_reason', sa.Text(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    with op.batch_alter_table('appointment_history', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_appointment_history_appointment_id'), ['appointment_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointment_history_changed_at'), ['changed_at'], unique=False)


def downgrade():
    op.drop_table('appointment_history')
    op.drop_index('uq_appointments_doctor_slot_active', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('patients')

"""Add activity, activity_stream and activity_heat_impact tables

Revision ID: heat_impact_001
Revises:
Create Date: 2026-10-18

activity_heat_impact stores one analysis per activity: headline numbers as
columns (history and acclimation queries), the full result as JSONB.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB


# revision identifiers, used by Alembic.
revision: str = 'heat_impact_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'activity',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('athlete_id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sport', sa.Text(), nullable=False, server_default='run'),
        sa.Column('duration_s', sa.Integer(), nullable=True),
        sa.Column('distance_m', sa.Integer(), nullable=True),
        sa.Column('total_elevation_gain', sa.Numeric(), nullable=True),
        sa.Column('start_lat', sa.Float(), nullable=True),
        sa.Column('start_lng', sa.Float(), nullable=True),
        sa.Column('start_elevation_m', sa.Float(), nullable=True),
    )
    op.create_index('ix_activity_athlete_id', 'activity', ['athlete_id'])

    op.create_table(
        'activity_stream',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('activity_id', UUID(as_uuid=True), sa.ForeignKey('activity.id'), nullable=False),
        sa.Column('stream_data', JSONB, nullable=False),
        sa.Column('channels_available', JSONB, nullable=False, server_default='[]'),
        sa.Column('point_count', sa.Integer(), nullable=False),
        sa.Column('source', sa.Text(), nullable=False, server_default='strava'),
        sa.Column('fetched_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('activity_id', name='uq_activity_stream_activity'),
    )

    op.create_table(
        'activity_heat_impact',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('activity_id', UUID(as_uuid=True), sa.ForeignKey('activity.id'), nullable=False, unique=True),
        sa.Column('athlete_id', UUID(as_uuid=True), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=False),
        sa.Column('severity', sa.Text(), nullable=False),
        sa.Column('heat_stress_component', sa.Integer(), nullable=False),
        sa.Column('physiological_stress_component', sa.Integer(), nullable=False),
        sa.Column('humidity_strain_score', sa.Integer(), nullable=False),
        sa.Column('cooling_benefit_score', sa.Integer(), nullable=False),
        sa.Column('normalized_score', sa.Float(), nullable=True),
        sa.Column('correlation_strength', sa.Float(), nullable=False, server_default='0'),
        sa.Column('primary_factor', sa.Text(), nullable=False, server_default='NONE'),
        sa.Column('hr_drift_magnitude_bpm', sa.Float(), nullable=True),
        sa.Column('pace_degradation_percent', sa.Float(), nullable=True),
        sa.Column('avg_temperature_c', sa.Float(), nullable=True),
        sa.Column('avg_humidity_percent', sa.Float(), nullable=True),
        sa.Column('result_json', JSONB, nullable=False),
        sa.Column('analysis_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('analyzed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "severity IN ('LOW', 'MODERATE', 'HIGH', 'EXTREME')",
            name='ck_activity_heat_impact_severity',
        ),
    )
    op.create_index(
        'ix_activity_heat_impact_athlete_analyzed',
        'activity_heat_impact',
        ['athlete_id', 'analyzed_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_activity_heat_impact_athlete_analyzed', table_name='activity_heat_impact')
    op.drop_table('activity_heat_impact')
    op.drop_table('activity_stream')
    op.drop_index('ix_activity_athlete_id', table_name='activity')
    op.drop_table('activity')

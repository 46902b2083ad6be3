# Generated migration for team models

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenancy', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='TeamAuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('team_id', models.UUIDField(db_index=True)),
                ('company_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('operation', models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete'), ('add_members', 'Add Members'), ('remove_member', 'Remove Member'), ('remove_members', 'Remove Members'), ('replace_members', 'Replace Members'), ('change_owner', 'Change Owner')], db_index=True, max_length=50)),
                ('affected_user_ids', models.JSONField(blank=True, default=list)),
                ('actor_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('correlation_id', models.CharField(blank=True, max_length=64)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('timestamp', models.DateTimeField(db_index=True)),
                ('recorded_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'team_audit_logs',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['team_id', 'timestamp'], name='team_audit_team_ts_idx'),
                    models.Index(fields=['actor_id', 'timestamp'], name='team_audit_actor_ts_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Team',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(2)])),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(choices=[('STANDARD', 'Standard'), ('REGULATED', 'Regulated')], db_index=True, default='STANDARD', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='teams', to='tenancy.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_teams', to=settings.AUTH_USER_MODEL)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='owned_teams', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'teams',
                'ordering': ['company', 'name'],
                'indexes': [
                    models.Index(fields=['company', 'is_active'], name='teams_company_active_idx'),
                    models.Index(fields=['owner'], name='teams_owner_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('company', 'name'), name='teams_unique_name_per_company'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Membership',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('added_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('added_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='added_team_memberships', to=settings.AUTH_USER_MODEL)),
                ('team', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='teams.team')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='team_memberships', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'team_memberships',
                'ordering': ['added_at'],
                'indexes': [
                    models.Index(fields=['user'], name='team_memberships_user_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('team', 'user'), name='team_memberships_unique_pair'),
                ],
            },
        ),
    ]

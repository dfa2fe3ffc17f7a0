from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('scheduling', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Encounter',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('type', models.CharField(default='consultation', max_length=64)),
                ('mode', models.CharField(choices=[('in_person', 'In Person'), ('telemedicine', 'Telemedicine'), ('phone', 'Phone'), ('messaging', 'Messaging')], default='telemedicine', max_length=16)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='in_progress', max_length=16)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('appointment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='encounters', to='scheduling.appointment')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patient_encounters', to=settings.AUTH_USER_MODEL)),
                ('provider', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='provider_encounters', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'encounter',
                'ordering': ['-start_time'],
                'indexes': [
                    models.Index(fields=['patient', 'start_time'], name='idx_encounter_patient_start'),
                    models.Index(fields=['provider'], name='idx_encounter_provider'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProgressNote',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('finalized', 'Finalized'), ('amended', 'Amended')], default='draft', max_length=16)),
                ('subjective', models.TextField(blank=True)),
                ('objective', models.TextField(blank=True)),
                ('assessment', models.TextField(blank=True)),
                ('plan', models.TextField(blank=True)),
                ('summary', models.TextField(blank=True)),
                ('attachments', models.JSONField(blank=True, default=list)),
                ('autosaved_at', models.DateTimeField(blank=True, null=True)),
                ('finalized_at', models.DateTimeField(blank=True, null=True)),
                ('signature_hash', models.CharField(blank=True, max_length=256, null=True)),
                ('amendment_reason', models.TextField(blank=True)),
                ('row_version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('amended_from', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='amendments', to='emr.progressnote')),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='authored_progress_notes', to=settings.AUTH_USER_MODEL)),
                ('cosigners', models.ManyToManyField(blank=True, related_name='cosigned_progress_notes', to=settings.AUTH_USER_MODEL)),
                ('encounter', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='progress_notes', to='emr.encounter')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patient_progress_notes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'progress_note',
                'ordering': ['-updated_at'],
                'indexes': [
                    models.Index(fields=['patient', 'updated_at'], name='idx_note_patient_updated'),
                    models.Index(fields=['encounter'], name='idx_note_encounter'),
                    models.Index(fields=['author'], name='idx_note_author'),
                    models.Index(fields=['status'], name='idx_note_status'),
                ],
            },
        ),
    ]

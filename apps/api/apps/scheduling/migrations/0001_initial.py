from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(blank=True, max_length=200)),
                ('date', models.DateTimeField(help_text='Start of the appointment')),
                ('duration', models.PositiveIntegerField(default=30, help_text='Minutes')),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('confirmed', 'Confirmed'), ('in-progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('no-show', 'No Show')], default='scheduled', max_length=16)),
                ('type', models.CharField(default='consultation', max_length=64)),
                ('notes', models.TextField(blank=True)),
                ('meeting_link', models.CharField(blank=True, max_length=500)),
                ('meeting_start_at', models.DateTimeField(blank=True, null=True)),
                ('meeting_end_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patient_appointments', to=settings.AUTH_USER_MODEL)),
                ('provider', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='provider_appointments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'appointment',
                'ordering': ['-date'],
                'indexes': [
                    models.Index(fields=['provider', 'date'], name='idx_appointment_provider_date'),
                    models.Index(fields=['patient'], name='idx_appointment_patient'),
                    models.Index(fields=['status'], name='idx_appointment_status'),
                ],
            },
        ),
    ]

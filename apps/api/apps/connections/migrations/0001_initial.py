from decimal import Decimal
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
            name='ProviderPatientLink',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('treatment_type', models.CharField(help_text='e.g. smoking_cessation, general', max_length=64)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('disconnected', 'Disconnected')], default='pending', max_length=16)),
                ('request_message', models.TextField(blank=True)),
                ('outstanding_balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('can_disconnect', models.BooleanField(default=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('disconnected_at', models.DateTimeField(blank=True, null=True)),
                ('disconnect_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='provider_links', to=settings.AUTH_USER_MODEL)),
                ('provider', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='patient_links', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Provider-Patient Link',
                'verbose_name_plural': 'Provider-Patient Links',
                'db_table': 'provider_patient_link',
                'indexes': [
                    models.Index(fields=['provider', 'patient', 'status'], name='idx_link_pair_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'approved')), fields=('provider', 'patient', 'treatment_type'), name='uniq_approved_link_per_treatment'),
                ],
            },
        ),
    ]

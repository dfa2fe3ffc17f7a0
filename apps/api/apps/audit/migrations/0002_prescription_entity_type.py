from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('audit', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='auditlog',
            name='entity_type',
            field=models.CharField(choices=[('encounter', 'Encounter'), ('progress_note', 'Progress Note'), ('investigation_order', 'Investigation Order'), ('investigation_result', 'Investigation Result'), ('correspondence', 'Correspondence'), ('template', 'Template'), ('user', 'User'), ('appointment', 'Appointment'), ('provider_patient_link', 'Provider-Patient Link'), ('prescription', 'Prescription')], max_length=32),
        ),
    ]

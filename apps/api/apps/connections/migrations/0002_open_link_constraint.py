from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('connections', '0001_initial'),
    ]

    operations = [
        migrations.RemoveConstraint(
            model_name='providerpatientlink',
            name='uniq_approved_link_per_treatment',
        ),
        migrations.AddConstraint(
            model_name='providerpatientlink',
            constraint=models.UniqueConstraint(
                condition=models.Q(('status__in', ['pending', 'approved'])),
                fields=('provider', 'patient', 'treatment_type'),
                name='uniq_open_link_per_treatment',
            ),
        ),
    ]

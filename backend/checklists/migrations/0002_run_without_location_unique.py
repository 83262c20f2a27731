from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('checklists', '0001_initial'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='checklistrun',
            constraint=models.UniqueConstraint(
                condition=models.Q(('location__isnull', True)),
                fields=('template', 'run_date'),
                name='uniq_checklist_run_without_location',
            ),
        ),
    ]

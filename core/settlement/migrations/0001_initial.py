from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='SettlementPeriod',
            fields=[
                ('period_id', models.CharField(help_text='D-YYYY-MM-DD or M-YYYY-MM', max_length=20, primary_key=True, serialize=False)),
                ('type', models.CharField(choices=[('daily', 'Daily'), ('monthly', 'Monthly')], max_length=10)),
                ('status', models.CharField(choices=[('open', 'Open'), ('closing', 'Closing'), ('closed', 'Closed')], default='open', max_length=10)),
                ('period_date', models.DateField(help_text='Settled day, or first day of the settled month')),
                ('opened_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('config_snapshot', models.JSONField(blank=True, default=dict)),
                ('summary', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'verbose_name': 'Settlement Period',
                'verbose_name_plural': 'Settlement Periods',
                'db_table': 'settlement_periods',
                'ordering': ['-opened_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'closed'), _negated=True), fields=('type',), name='one_unclosed_period_per_type'),
                ],
            },
        ),
    ]

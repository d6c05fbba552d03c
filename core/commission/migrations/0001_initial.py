from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('binary', '0001_initial'),
        ('settlement', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LedgerEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('DirectCommission', 'Direct Commission'), ('PairCommission', 'Pair Commission'), ('ActivationBonus', 'Activation Bonus')], max_length=20)),
                ('gross_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('tds_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('extra_deduction_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('net_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('source_event_id', models.CharField(help_text="Event that produced this entry: 'purchase:<id>', 'activation:<id>' or 'pair:<pair match id>'", max_length=100)),
                ('description', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('distributor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='binary.distributor')),
                ('pair_match', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entry', to='binary.pairmatchevent')),
                ('period', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='settlement.settlementperiod')),
            ],
            options={
                'verbose_name': 'Ledger Entry',
                'verbose_name_plural': 'Ledger Entries',
                'db_table': 'ledger_entries',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['distributor', 'kind', 'created_at'], name='ledger_dist_kind_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('distributor', 'kind', 'source_event_id'), name='unique_ledger_source_event'),
                    models.CheckConstraint(condition=models.Q(('net_amount__gte', 0)), name='ledger_net_not_negative'),
                ],
            },
        ),
    ]

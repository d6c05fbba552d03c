from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CommissionSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('direct_user_commission_amount', models.DecimalField(decimal_places=2, default=1000, help_text='Commission amount per direct user added before binary commission activation (default: ₹1000)', max_digits=10)),
                ('binary_commission_activation_count', models.IntegerField(default=3, help_text='Number of direct referrals needed to activate binary commission (default: 3)')),
                ('binary_pair_commission_amount', models.DecimalField(decimal_places=2, default=2000, help_text='Commission amount per binary pair after activation (default: ₹2000)', max_digits=10)),
                ('binary_tds_threshold_pairs', models.IntegerField(default=5, help_text='Number of pairs after activation before extra deduction starts (default: 5)')),
                ('binary_commission_tds_percentage', models.DecimalField(decimal_places=2, default=20, help_text='TDS percentage on binary pair commissions and the activation bonus (default: 20%)', max_digits=5)),
                ('binary_extra_deduction_percentage', models.DecimalField(decimal_places=2, default=20, help_text='Extra deduction percentage on pairs beyond the TDS threshold (default: 20%)', max_digits=5)),
                ('binary_daily_pair_limit', models.IntegerField(default=10, help_text='Maximum binary pairs per settlement run after activation (default: 10 pairs = ₹20,000)')),
                ('max_earnings_before_active_buyer', models.IntegerField(default=5, help_text='Maximum lifetime binary pairs a non-Active Buyer distributor can be paid for (default: 5). Further pairs stay in the counters until the distributor becomes an Active Buyer.')),
                ('binary_commission_initial_bonus', models.DecimalField(decimal_places=2, default=0, help_text='Bonus paid once when binary commission is activated. TDS is deducted from this amount.', max_digits=10)),
                ('binary_tree_default_placement_side', models.CharField(choices=[('left', 'Left'), ('right', 'Right')], default='left', help_text='Default placement side for binary tree (left or right). Controls which slot spillover fills.', max_length=5)),
                ('placement_search_strategy', models.CharField(choices=[('bfs', 'Breadth-first'), ('dfs', 'Depth-first (follow default side chain)')], default='bfs', help_text='How spillover searches the preferred side subtree for an empty slot', max_length=3)),
                ('spillover_max_depth', models.IntegerField(default=20, help_text='How many levels below the referrer spillover may search before falling back to the other side')),
                ('max_tree_depth', models.IntegerField(default=64, help_text='Maximum depth of any node below the root')),
                ('carry_forward_enabled', models.BooleanField(default=True, help_text='Allow unmatched leg counts to carry forward to the next period')),
                ('carry_forward_type', models.CharField(choices=[('full', 'Full Amount'), ('partial', 'Partial (Percentage)'), ('capped', 'Capped Amount')], default='full', max_length=10)),
                ('carry_forward_max_periods', models.IntegerField(default=3, help_text='Maximum number of consecutive periods a carried bucket survives')),
                ('carry_forward_percentage', models.DecimalField(decimal_places=2, default=100, help_text='Percentage of unmatched counts to carry forward (partial and capped types)', max_digits=5)),
                ('carry_forward_max_amount', models.DecimalField(decimal_places=2, default=50000, help_text='Maximum rupee value of pairs that can be carried forward (capped type)', max_digits=12)),
                ('carry_forward_weak_leg_only', models.BooleanField(default=False, help_text='Only carry forward from the weaker leg')),
                ('reset_levels_on_period_close', models.BooleanField(default=False, help_text='Reset distributor ceiling levels when a monthly period closes')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('updated_by', models.ForeignKey(blank=True, help_text='Admin who last updated these settings', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_commission_settings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Commission Settings',
                'verbose_name_plural': 'Commission Settings',
                'db_table': 'commission_settings',
            },
        ),
        migrations.CreateModel(
            name='CeilingLevel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rank', models.PositiveIntegerField(unique=True)),
                ('name', models.CharField(max_length=50)),
                ('ceiling', models.DecimalField(decimal_places=2, max_digits=12)),
                ('pair_commission_amount', models.DecimalField(blank=True, decimal_places=2, help_text='Overrides binary_pair_commission_amount for distributors at this level', max_digits=10, null=True)),
            ],
            options={
                'verbose_name': 'Ceiling Level',
                'verbose_name_plural': 'Ceiling Levels',
                'db_table': 'ceiling_levels',
                'ordering': ['rank'],
            },
        ),
    ]

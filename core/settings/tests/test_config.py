"""
Tests for commission configuration snapshots and validation
"""
from dataclasses import replace
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.binary.exceptions import ConfigInvariantViolation
from core.binary.tests.helpers import daily_period, make_config
from core.settings.config import CommissionConfig, default_config, load_commission_config
from core.settings.models import CeilingLevel, CommissionSettings


class CommissionConfigValidationTest(TestCase):
    """Test CommissionConfig.validate"""

    def test_defaults_are_valid(self):
        """Test the built-in defaults pass validation"""
        config = default_config().validate()
        self.assertEqual(config.activation_threshold, 3)
        self.assertEqual(len(config.level_table), 5)

    def test_all_violations_reported(self):
        """Test every broken rule is listed, not just the first"""
        config = replace(
            default_config(),
            activation_threshold=0,
            tds_percentage=Decimal('120'),
            daily_pair_limit=0,
            default_placement_side='middle',
        )
        with self.assertRaises(ConfigInvariantViolation) as ctx:
            config.validate()
        self.assertEqual(len(ctx.exception.violations), 4)
        self.assertIn('tds_percentage', str(ctx.exception))

    def test_level_table_must_increase(self):
        """Test ceilings out of order are rejected"""
        tiers = default_config().level_table
        config = replace(default_config(), level_table=(tiers[1], tiers[0]))
        with self.assertRaises(ConfigInvariantViolation):
            config.validate()

    def test_percentages_summing_over_100_are_accepted(self):
        """Test individually valid percentages are accepted even if their sum exceeds 100"""
        config = make_config(tds_percentage=Decimal('70'), extra_deduction_percentage=Decimal('50'))
        self.assertTrue(config.deductions_exceed_gross)

    def test_snapshot_survives_json(self):
        """Test a period snapshot restores the same config"""
        config = make_config(daily_pair_limit=7, carry_forward={'type': 'capped', 'max_amount': Decimal('6000')})
        period = daily_period(config)
        period.refresh_from_db()
        self.assertEqual(period.config, config)


class LoadCommissionConfigTest(TestCase):
    """Test loading the live settings row"""

    def test_loads_settings_and_levels(self):
        """Test the snapshot reflects the settings row and the seeded level table"""
        settings = CommissionSettings.get_settings()
        settings.binary_daily_pair_limit = 12
        settings.save()

        config = load_commission_config()

        self.assertEqual(config.daily_pair_limit, 12)
        self.assertEqual([tier.name for tier in config.level_table], list(
            CeilingLevel.objects.order_by('rank').values_list('name', flat=True)
        ))

    def test_invalid_settings_keep_last_valid_config(self):
        """Test an invalid row is not applied and the last period snapshot is used"""
        last_good = make_config(daily_pair_limit=8)
        daily_period(last_good)

        settings = CommissionSettings.get_settings()
        settings.binary_commission_tds_percentage = Decimal('150')
        settings.save()

        with self.assertLogs('core.settings.config', level='ERROR'):
            config = load_commission_config()

        self.assertEqual(config.daily_pair_limit, 8)
        self.assertEqual(config.tds_percentage, Decimal('20'))

    def test_invalid_settings_without_history_fall_back_to_defaults(self):
        """Test the built-in defaults are used when no period has been opened"""
        settings = CommissionSettings.get_settings()
        settings.binary_daily_pair_limit = 0
        settings.save()

        with self.assertLogs('core.settings.config', level='ERROR'):
            config = load_commission_config()

        self.assertEqual(config, default_config())

    def test_deductions_over_100_applied_with_warning(self):
        """Test percentages summing past 100 are applied and logged as a config invariant warning"""
        settings = CommissionSettings.get_settings()
        settings.binary_commission_tds_percentage = Decimal('70')
        settings.binary_extra_deduction_percentage = Decimal('50')
        settings.save()

        with self.assertLogs('core.settings.config', level='WARNING') as logs:
            config = load_commission_config()

        self.assertIn('ConfigInvariantViolation', logs.output[0])
        self.assertEqual(config.tds_percentage, Decimal('70'))
        self.assertEqual(config.extra_deduction_percentage, Decimal('50'))

    def test_valid_settings_log_no_warning(self):
        """Test ordinary settings load without a config warning"""
        with self.assertNoLogs('core.settings.config', level='WARNING'):
            load_commission_config()

    def test_settings_cannot_be_deleted(self):
        """Test the singleton refuses deletion"""
        with self.assertRaises(Exception):
            CommissionSettings.get_settings().delete()


class SettingsEndpointTest(TestCase):
    """Test /api/settings/"""

    def setUp(self):
        self.client = APIClient()
        self.admin = get_user_model().objects.create_superuser(
            username='admin', email='admin@example.com', password='testpass123'
        )

    def test_requires_admin(self):
        """Test anonymous requests are refused"""
        response = self.client.get('/api/settings/')
        self.assertIn(response.status_code, (401, 403))

    def test_get_settings(self):
        """Test admin can read settings with the level table"""
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/settings/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['binary_daily_pair_limit'], 10)
        self.assertEqual(len(response.data['levels']), 5)

    def test_patch_valid(self):
        """Test a valid PATCH is saved with the editing admin"""
        self.client.force_authenticate(self.admin)
        response = self.client.patch('/api/settings/', {'binary_daily_pair_limit': 15}, format='json')
        self.assertEqual(response.status_code, 200)

        settings = CommissionSettings.get_settings()
        self.assertEqual(settings.binary_daily_pair_limit, 15)
        self.assertEqual(settings.updated_by, self.admin)

    def test_patch_invalid_is_rejected(self):
        """Test an invalid PATCH returns 400 and saves nothing"""
        self.client.force_authenticate(self.admin)
        response = self.client.patch(
            '/api/settings/',
            {'binary_extra_deduction_percentage': '140.00', 'binary_commission_activation_count': 0},
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(len(response.data['non_field_errors']), 2)

        settings = CommissionSettings.get_settings()
        self.assertEqual(settings.binary_extra_deduction_percentage, Decimal('20'))
        self.assertEqual(settings.binary_commission_activation_count, 3)

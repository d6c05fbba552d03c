from rest_framework import serializers

from .models import Distributor, PairMatchEvent, SubtreeCounters


class SubtreeCountersSerializer(serializers.ModelSerializer):
    available_left = serializers.IntegerField(read_only=True)
    available_right = serializers.IntegerField(read_only=True)

    class Meta:
        model = SubtreeCounters
        exclude = ('distributor',)


class DistributorSerializer(serializers.ModelSerializer):
    counters = SubtreeCountersSerializer(read_only=True)
    left_child_id = serializers.SerializerMethodField()
    right_child_id = serializers.SerializerMethodField()

    class Meta:
        model = Distributor
        fields = '__all__'

    def _child_id(self, obj, side):
        for child in obj.children.all():
            if child.side == side:
                return child.id
        return None

    def get_left_child_id(self, obj):
        return self._child_id(obj, 'left')

    def get_right_child_id(self, obj):
        return self._child_id(obj, 'right')


class PairMatchEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = PairMatchEvent
        fields = '__all__'


class CompensationEventSerializer(serializers.Serializer):
    """
    Inbound event envelope:

    - ReferralPlaced: distributor_id, referrer_id (omit for the root), preferred_side
    - PurchaseActivated: distributor_id, amount_paid
    - DirectReferralCountChanged: distributor_id, new_count
    """
    REFERRAL_PLACED = 'ReferralPlaced'
    PURCHASE_ACTIVATED = 'PurchaseActivated'
    DIRECT_REFERRAL_COUNT_CHANGED = 'DirectReferralCountChanged'

    type = serializers.ChoiceField(choices=[REFERRAL_PLACED, PURCHASE_ACTIVATED, DIRECT_REFERRAL_COUNT_CHANGED])
    distributor_id = serializers.CharField(max_length=64)
    referrer_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    preferred_side = serializers.ChoiceField(choices=['left', 'right'], required=False, allow_null=True)
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    new_count = serializers.IntegerField(min_value=0, required=False)

    def validate(self, attrs):
        if attrs['type'] == self.DIRECT_REFERRAL_COUNT_CHANGED and attrs.get('new_count') is None:
            raise serializers.ValidationError({'new_count': 'Required for DirectReferralCountChanged'})
        return attrs

from rest_framework import serializers

from .models import Wallet, WalletTransaction


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = '__all__'


class WalletTransactionSerializer(serializers.ModelSerializer):
    source_event_id = serializers.CharField(source='ledger_entry.source_event_id', read_only=True)

    class Meta:
        model = WalletTransaction
        fields = [
            'id', 'distributor', 'wallet', 'transaction_type', 'amount', 'balance_before',
            'balance_after', 'description', 'ledger_entry', 'source_event_id', 'created_at',
        ]

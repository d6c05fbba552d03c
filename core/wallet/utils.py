import logging
from decimal import Decimal

from django.db import transaction

from .models import Wallet, WalletTransaction

logger = logging.getLogger(__name__)

LEDGER_KIND_TO_TRANSACTION_TYPE = {
    'DirectCommission': WalletTransaction.DIRECT_USER_COMMISSION,
    'PairCommission': WalletTransaction.BINARY_PAIR_COMMISSION,
    'ActivationBonus': WalletTransaction.BINARY_INITIAL_BONUS,
}


def get_or_create_wallet(distributor):
    """Get or create wallet for distributor"""
    wallet, created = Wallet.objects.get_or_create(distributor=distributor)
    return wallet


def credit_ledger_entry(entry):
    """
    Credit a ledger entry's net amount to the distributor's wallet.

    TDS and extra deduction are recorded as tracking-only transactions
    (negative amount, balance unchanged) since the credit is already net.
    Crediting the same entry twice is a no-op.

    Returns:
        Wallet
    """
    transaction_type = LEDGER_KIND_TO_TRANSACTION_TYPE[entry.kind]

    with transaction.atomic():
        wallet = get_or_create_wallet(entry.distributor)
        wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)

        if WalletTransaction.objects.filter(ledger_entry=entry, transaction_type=transaction_type).exists():
            logger.info(f"Ledger entry {entry.pk} already credited to wallet of {entry.distributor_id}, skipping")
            return wallet

        balance_before = wallet.balance
        net_amount = Decimal(str(entry.net_amount))
        wallet.balance += net_amount
        wallet.total_earned += net_amount
        wallet.save(update_fields=['balance', 'total_earned', 'updated_at'])

        WalletTransaction.objects.create(
            distributor=entry.distributor,
            wallet=wallet,
            transaction_type=transaction_type,
            amount=net_amount,
            balance_before=balance_before,
            balance_after=wallet.balance,
            description=entry.description,
            ledger_entry=entry,
        )

        for deduction_type, amount in (
            (WalletTransaction.TDS_DEDUCTION, entry.tds_amount),
            (WalletTransaction.EXTRA_DEDUCTION, entry.extra_deduction_amount),
        ):
            if amount and amount > 0:
                WalletTransaction.objects.create(
                    distributor=entry.distributor,
                    wallet=wallet,
                    transaction_type=deduction_type,
                    amount=-Decimal(str(amount)),
                    balance_before=wallet.balance,
                    balance_after=wallet.balance,
                    description=f"{deduction_type.replace('_', ' ').title()} on {entry.kind} {entry.source_event_id}",
                    ledger_entry=entry,
                )

    logger.info(
        f"Credited ₹{net_amount} ({transaction_type}) to wallet of {entry.distributor_id}. "
        f"Balance: ₹{balance_before} → ₹{wallet.balance}"
    )
    return wallet

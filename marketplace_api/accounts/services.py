import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F

from .models import ClientProfile

logger = logging.getLogger(__name__)

# Largest value a Decimal(12, 2) balance column can hold.
MAX_BALANCE = Decimal('9999999999.99')


class BalanceLimitExceeded(Exception):
    pass


def add_client_funds(client_id, amount):
    """
    Credit prepaid funds to a client balance.

    The increment runs as a single ``balance = balance + amount`` update so that
    concurrent credits and settlement debits of the same account never overwrite
    each other. Raises ``ClientProfile.DoesNotExist`` for an unknown client and
    ``BalanceLimitExceeded`` when the new balance would not fit the balance column.
    """
    with transaction.atomic():
        updated = ClientProfile.objects.filter(pk=client_id, balance__lte=MAX_BALANCE - amount).update(
            balance=F('balance') + amount
        )
        if not updated:
            if not ClientProfile.objects.filter(pk=client_id).exists():
                raise ClientProfile.DoesNotExist(f"Client {client_id} not found")
            raise BalanceLimitExceeded(f"Balance cannot exceed {MAX_BALANCE}.")
        balance = ClientProfile.objects.values_list('balance', flat=True).get(pk=client_id)

    logger.info("Added funds to client balance", extra={'client_id': client_id, 'amount': str(amount), 'balance': str(balance)})
    return balance

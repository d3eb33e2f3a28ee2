import logging

from django.conf import settings
from django.db import transaction, connection, DatabaseError, IntegrityError
from django.db.models import F
from django.utils import timezone

from accounts.models import ClientProfile, FreelancerProfile
from projects.models import Project
from .calculator import to_money, split_amount, fee_percentage, get_platform_fee_rate, validate_fee_rate
from .exceptions import (
    SettlementError,
    SettlementValidationError,
    InsufficientFunds,
    ProjectNotFound,
    ClientNotFound,
    FreelancerNotFound,
    AlreadySettled,
    InvalidProjectState,
    PartialFailure,
    SettlementTimeout,
)
from .models import PlatformRevenue, Payment

logger = logging.getLogger(__name__)

# query_canceled (statement_timeout) and lock_not_available (lock_timeout)
TIMEOUT_SQLSTATES = {'57014', '55P03'}


def is_timeout_error(exc):
    cause = exc.__cause__ or exc
    code = getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)
    return code in TIMEOUT_SQLSTATES


class SettlementService:
    """
    Settles a completed project: the client pays ``amount``, the platform keeps
    its fee and the freelancer is credited the rest.

    All writes (project status, fee ledger entry, payment record, client debit,
    freelancer credit) happen in one database transaction. The three rows involved
    are locked for its duration and both balance changes are conditional
    ``balance = balance +/- x`` updates, so concurrent settlements against the same
    client cannot overdraw it. Any failure leaves none of the effects applied.
    """
    def __init__(self, fee_rate=None):
        self.fee_rate = fee_rate

    def settle(self, *, project_id, client_id, freelancer_id, amount):
        project_id, client_id, freelancer_id = self._validate_identifiers(
            project_id=project_id, client_id=client_id, freelancer_id=freelancer_id
        )
        try:
            amount = to_money(amount, strict=True)
            rate = get_platform_fee_rate() if self.fee_rate is None else validate_fee_rate(self.fee_rate)
            fee, payout = split_amount(amount, rate)
        except ValueError as exc:
            raise SettlementValidationError(str(exc))

        logger.info(
            "Settling project %s: total %s, platform fee (%s) %s, to freelancer %s",
            project_id, amount, rate, fee, payout,
        )

        try:
            with transaction.atomic():
                self._apply_timeouts()
                project, client, freelancer = self._run_step(
                    'load', self._lock_participants, project_id, client_id, freelancer_id
                )
                self._ensure_settleable(project, client_id, freelancer_id)
                self._ensure_sufficient_funds(client, amount)

                self._run_step('mark_paid', self._mark_paid, project)
                self._run_step('record_fee', self._record_fee, project, amount, fee, payout, rate)
                self._run_step('debit_client', self._debit_client, client, amount)
                self._run_step('credit_freelancer', self._credit_freelancer, freelancer, payout)

                client_balance, freelancer_balance = self._run_step(
                    'read_balances', self._read_balances, client, freelancer
                )
        except SettlementError as exc:
            logger.warning("Settlement of project %s rejected: %s (%s)", project_id, exc.error_kind, exc.message)
            raise

        logger.info(
            "Project %s settled: client %s balance %s, freelancer %s balance %s",
            project_id, client_id, client_balance, freelancer_id, freelancer_balance,
        )

        return {
            'fee_percentage': fee_percentage(rate),
            'platform_fee': fee,
            'amount_to_freelancer': payout,
            'client_balance': client_balance,
            'freelancer_balance': freelancer_balance,
        }

    def _validate_identifiers(self, **identifiers):
        missing = [name for name, value in identifiers.items() if value in (None, '')]
        if missing:
            raise SettlementValidationError(f"Missing required payment fields: {', '.join(missing)}")
        try:
            return tuple(int(value) for value in identifiers.values())
        except (TypeError, ValueError):
            raise SettlementValidationError("Payment identifiers must be integers.")

    def _apply_timeouts(self):
        if connection.vendor != 'postgresql':
            return
        timeout_ms = int(settings.SETTLEMENT_STATEMENT_TIMEOUT_MS)
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL statement_timeout = {timeout_ms}")
            cursor.execute(f"SET LOCAL lock_timeout = {timeout_ms}")

    def _run_step(self, step, action, *args):
        try:
            return action(*args)
        except SettlementError:
            raise
        except DatabaseError as exc:
            if is_timeout_error(exc):
                logger.error("Settlement step %s timed out", step, exc_info=True)
                raise SettlementTimeout(
                    f"Settlement timed out at step '{step}'; no changes were applied.", step=step
                ) from exc
            logger.exception("Settlement step %s failed", step)
            raise PartialFailure(
                f"Settlement aborted at step '{step}'; no changes were applied.", step=step
            ) from exc

    def _lock_participants(self, project_id, client_id, freelancer_id):
        # Lock order is always project -> client -> freelancer.
        try:
            project = Project.objects.select_for_update().get(pk=project_id)
        except Project.DoesNotExist:
            raise ProjectNotFound(f"Project {project_id} not found.")
        try:
            client = ClientProfile.objects.select_for_update().get(pk=client_id)
        except ClientProfile.DoesNotExist:
            raise ClientNotFound(f"Client {client_id} not found.")
        try:
            freelancer = FreelancerProfile.objects.select_for_update().get(pk=freelancer_id)
        except FreelancerProfile.DoesNotExist:
            raise FreelancerNotFound(f"Freelancer {freelancer_id} not found.")
        return project, client, freelancer

    def _ensure_settleable(self, project, client_id, freelancer_id):
        if project.client_id != client_id or project.freelancer_id != freelancer_id:
            raise SettlementValidationError("Project does not belong to the given client and freelancer.")
        if project.status == Project.PAID or Payment.objects.filter(project=project).exists():
            raise AlreadySettled(f"Project {project.id} has already been paid.")
        if project.status != Project.COMPLETED:
            raise InvalidProjectState(
                f"Project {project.id} is {project.status}; only completed projects can be settled."
            )

    def _ensure_sufficient_funds(self, client, amount):
        if client.balance < amount:
            raise InsufficientFunds(
                f"Client balance {client.balance} is lower than the amount to settle {amount}."
            )

    def _mark_paid(self, project):
        now = timezone.now()
        updated = Project.objects.filter(pk=project.pk, status=Project.COMPLETED).update(
            status=Project.PAID, paid_at=now, updated_at=now,
        )
        if not updated:
            raise AlreadySettled(f"Project {project.pk} has already been paid.")

    def _record_fee(self, project, amount, fee, payout, rate):
        PlatformRevenue.objects.create(
            project=project,
            client_id=project.client_id,
            freelancer_id=project.freelancer_id,
            amount=fee,
            percentage=rate,
        )
        try:
            with transaction.atomic():
                return Payment.objects.create(
                    project=project,
                    client_id=project.client_id,
                    freelancer_id=project.freelancer_id,
                    amount=amount,
                    platform_fee=fee,
                    amount_to_freelancer=payout,
                )
        except IntegrityError:
            raise AlreadySettled(f"Project {project.pk} has already been paid.")

    def _debit_client(self, client, amount):
        updated = ClientProfile.objects.filter(pk=client.pk, balance__gte=amount).update(
            balance=F('balance') - amount, updated_at=timezone.now(),
        )
        if not updated:
            raise InsufficientFunds(f"Client balance is lower than the amount to settle {amount}.")

    def _credit_freelancer(self, freelancer, payout):
        updated = FreelancerProfile.objects.filter(pk=freelancer.pk).update(
            balance=F('balance') + payout, updated_at=timezone.now(),
        )
        if not updated:
            raise FreelancerNotFound(f"Freelancer {freelancer.pk} not found.")

    def _read_balances(self, client, freelancer):
        client_balance = ClientProfile.objects.values_list('balance', flat=True).get(pk=client.pk)
        freelancer_balance = FreelancerProfile.objects.values_list('balance', flat=True).get(pk=freelancer.pk)
        return client_balance, freelancer_balance

from rest_framework import status


class SettlementError(Exception):
    """
    Base class for settlement failures.

    Every subclass carries the ``error_kind`` reported to callers and the HTTP
    status the API answers with. ``step`` names the settlement step that failed,
    for infrastructure errors raised after the transaction started writing.
    """
    error_kind = 'SettlementError'
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Settlement failed."

    def __init__(self, message=None, step=None):
        self.message = message or self.default_message
        self.step = step
        super().__init__(self.message)

    def as_dict(self):
        data = {'error_kind': self.error_kind, 'message': self.message}
        if self.step:
            data['step'] = self.step
        return data


class SettlementValidationError(SettlementError):
    error_kind = 'ValidationError'
    default_message = "Invalid settlement request."


class InsufficientFunds(SettlementError):
    error_kind = 'InsufficientFunds'
    http_status = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "Client balance is lower than the amount to settle."


class ProjectNotFound(SettlementError):
    error_kind = 'ProjectNotFound'
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Project not found."


class ClientNotFound(SettlementError):
    error_kind = 'ClientNotFound'
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Client not found."


class FreelancerNotFound(SettlementError):
    error_kind = 'FreelancerNotFound'
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Freelancer not found."


class AlreadySettled(SettlementError):
    error_kind = 'AlreadySettled'
    http_status = status.HTTP_409_CONFLICT
    default_message = "Project has already been paid."


class InvalidProjectState(SettlementError):
    error_kind = 'InvalidProjectState'
    http_status = status.HTTP_409_CONFLICT
    default_message = "Only completed projects can be settled."


class PartialFailure(SettlementError):
    error_kind = 'PartialFailure'
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Settlement aborted; no changes were applied."


class SettlementTimeout(SettlementError):
    error_kind = 'Timeout'
    http_status = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Settlement timed out; no changes were applied."

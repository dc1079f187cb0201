from typing import Any, Dict

from fastapi import status


class ServiceBellError(Exception):
    """Erro de domínio convertido em resposta JSON pelo handler da aplicação."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, **self.extra()}


class NotFoundError(ServiceBellError):
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(ServiceBellError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(ServiceBellError):
    status_code = status.HTTP_403_FORBIDDEN


class SessionInvalidError(ServiceBellError):
    """Sessão de mesa ausente, encerrada ou expirada.

    O cliente deve descartar o estado local da sessão em vez de tentar de novo.
    """

    status_code = status.HTTP_403_FORBIDDEN

    def extra(self) -> Dict[str, Any]:
        return {"shouldClearSession": True}


class InvalidStateError(ServiceBellError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(ServiceBellError):
    status_code = status.HTTP_400_BAD_REQUEST

    def extra(self) -> Dict[str, Any]:
        return {"code": "conflict"}


class InvalidTransitionError(ServiceBellError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change request status from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested

    def extra(self) -> Dict[str, Any]:
        return {"from": self.current, "to": self.requested}


class ValidationFailedError(ServiceBellError):
    status_code = status.HTTP_400_BAD_REQUEST

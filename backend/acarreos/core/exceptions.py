"""
Пользовательская иерархия исключений приложения.
"""


class AppException(Exception):
    def __init__(self, status_code: int, detail: str, error_code: str | None = None):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code


class NotFoundException(AppException):
    def __init__(self, resource: str, identifier):
        super().__init__(404, f"{resource} con id {identifier} no encontrado", "NOT_FOUND")


class ValidationException(AppException):
    def __init__(self, detail: str):
        super().__init__(400, detail, "VALIDATION_ERROR")


class DuplicateError(AppException):
    def __init__(self, detail: str):
        super().__init__(409, detail, "DUPLICATE")


class FolioLookupFailed(AppException):
    """Не удалось прочитать последний фолио. Наружу не выходит: генератор деградирует."""

    def __init__(self, prefix: str, reason: str = ""):
        super().__init__(503, f"No se pudo consultar el último folio {prefix}: {reason}", "FOLIO_LOOKUP_FAILED")
        self.prefix = prefix


class InvalidCompletionInput(AppException):
    """Некорректные данные закрытия аренды: исправляет пользователь, без повтора."""

    def __init__(self, detail: str):
        super().__init__(422, detail, "INVALID_COMPLETION_INPUT")


class InvalidTransition(AppException):
    def __init__(self, current: str, target: str, detail: str | None = None):
        super().__init__(
            409,
            detail or f"No se puede pasar el vale de '{current}' a '{target}'",
            "INVALID_TRANSITION",
        )
        self.current = current
        self.target = target


class PersistenceFailed(AppException):
    """Ошибка записи. Повтор всей выдачи безопасен."""

    def __init__(self, detail: str):
        super().__init__(503, detail, "PERSISTENCE_FAILED")


class VerificationImageFailed(AppException):
    def __init__(self, detail: str):
        super().__init__(502, detail, "VERIFICATION_IMAGE_FAILED")


class DeliveryUnavailable(AppException):
    """Доставка недоступна. Документ не перегенерируется, повторяется только доставка."""

    def __init__(self, detail: str):
        super().__init__(503, detail, "DELIVERY_UNAVAILABLE")


class IssuanceInProgress(AppException):
    def __init__(self, voucher_id: int):
        super().__init__(
            409,
            f"El vale {voucher_id} ya tiene una generación de PDF en curso",
            "ISSUANCE_IN_PROGRESS",
        )
        self.voucher_id = voucher_id

"""Ошибки бизнес-логики. Сервисы их бросают, main.py превращает в ответ {data, error}."""
from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    default_message = "Внутренняя ошибка сервера"

    def __init__(self, message: Optional[str] = None, data: Any = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.data = data
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Некорректные данные запроса"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Не найдено"


class ConflictError(AppError):
    # 400 для нарушений правил (нет в наличии, мало на складе), 409 для дублей
    status_code = 400
    default_message = "Конфликт с текущим состоянием"


class AuthError(AppError):
    status_code = 401
    default_message = "Не авторизован"


class InternalError(AppError):
    status_code = 500

"""
Сервисный слой для бизнес-логики.

Модули импортируются напрямую (acarreos.services.<модуль>), чтобы схемы
могли пользоваться расчётами без циклических импортов.
"""

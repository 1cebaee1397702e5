"""
Обработчики команд и сообщений бота.
"""

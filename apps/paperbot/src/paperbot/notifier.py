"""Operator alerts for the paper trading service.

Every alert is logged. When a Telegram chat is configured the alert is also
queued for a single sender thread; repeats of the same error key within the
throttle window are only logged, so one failing strategy cannot flood the chat.
"""

import logging
import queue
import threading
import time
from typing import Callable, Optional

import telebot

from paperbot.config import TelegramConfig

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_SECONDS = 60.0


class Notifier:
    """Logs alerts and forwards them to Telegram.

    Safe to call from the event loop and from tick worker threads.

    Example:
        notifier = Notifier(config.notification.telegram)
        notifier.tick_failed(strategy_id, exc)
    """

    def __init__(
        self,
        telegram_config: Optional[TelegramConfig] = None,
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._chat_id = telegram_config.chat_id if telegram_config else None
        self._throttle_seconds = throttle_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # Clock reading of the last Telegram send per error key
        self._last_sent: dict[str, float] = {}
        self._outbox: queue.SimpleQueue[str] = queue.SimpleQueue()
        self._sender: Optional[threading.Thread] = None
        self._bot: Optional[telebot.TeleBot] = None

        if telegram_config:
            try:
                self._bot = telebot.TeleBot(telegram_config.bot_token)
            except Exception as e:
                logger.warning(f"Telegram alerts disabled, bot setup failed: {e}")
            else:
                logger.info(f"Telegram alerts enabled for chat {self._chat_id}")

    @property
    def enabled(self) -> bool:
        return self._bot is not None

    def alert(self, message: str, error_key: Optional[str] = None) -> bool:
        """Log an alert and queue it for Telegram.

        Args:
            message: Alert text.
            error_key: Throttle key, e.g. 'tick:<strategy_id>'. Defaults to
                the message itself.

        Returns:
            True if the message was queued for Telegram
        """
        logger.error(f"ALERT: {message}")

        if self._bot is None or not self._claim(error_key or message):
            return False
        self._outbox.put(message)
        self._ensure_sender()
        return True

    def alert_exception(
        self, context: str, exc: BaseException, error_key: Optional[str] = None
    ) -> bool:
        """Log an exception with its traceback and alert a one-line summary.

        Args:
            context: Where the error happened, e.g. 'startup'.
            exc: The exception.
            error_key: Throttle key. Defaults to context.
        """
        logger.error(f"Exception in {context}: {exc}", exc_info=exc)
        return self.alert(
            f"Paperbot: {context} - {type(exc).__name__}: {exc}",
            error_key=error_key or context,
        )

    def tick_failed(self, strategy_id: str, exc: BaseException) -> bool:
        """Alert on a strategy tick that raised. Throttled per strategy."""
        return self.alert_exception(f"tick {strategy_id}", exc, error_key=f"tick:{strategy_id}")

    def _claim(self, key: str) -> bool:
        """Reserve a Telegram send for key unless one went out within the window."""
        now = self._clock()
        with self._lock:
            last = self._last_sent.get(key)
            if last is not None and now - last < self._throttle_seconds:
                return False
            self._last_sent[key] = now
            return True

    def _ensure_sender(self) -> None:
        with self._lock:
            if self._sender is None:
                self._sender = threading.Thread(
                    target=self._drain_outbox, name="telegram-alerts", daemon=True
                )
                self._sender.start()

    def _drain_outbox(self) -> None:
        while True:
            self._send_telegram(self._outbox.get())

    def _send_telegram(self, message: str) -> None:
        try:
            self._bot.send_message(chat_id=self._chat_id, text=message)
        except Exception as e:
            logger.warning(f"Failed to send Telegram message: {e}")

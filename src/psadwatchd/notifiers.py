"""Alert channels for psadwatchd."""

from __future__ import annotations

import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import requests

from .config import WatchdogConfig

logger = logging.getLogger("psadwatchd")

MAIL_REDIRECT = "< /dev/null > /dev/null 2>&1"


def restart_subject(name: str, hostname: str) -> str:
    return f"psadwatchd: Restarting {name} on {hostname}"


def give_up_subject(name: str, hostname: str) -> str:
    return f"psadwatchd: Could not restart {name} on {hostname}.  Exiting."


class AlertEvent:
    """Represents an alert about one daemon."""

    RESTART_MISSING_PIDFILE = "restart_missing_pidfile"
    RESTART_DEAD_PROCESS = "restart_dead_process"
    GIVE_UP = "give_up"

    def __init__(
        self,
        kind: str,
        daemon_name: str,
        hostname: str,
        timestamp: Optional[datetime] = None,
    ):
        self.kind = kind
        self.daemon_name = daemon_name
        self.hostname = hostname
        self.timestamp = timestamp or datetime.now()

    @property
    def subject(self) -> str:
        if self.kind == self.GIVE_UP:
            return give_up_subject(self.daemon_name, self.hostname)
        return restart_subject(self.daemon_name, self.hostname)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "daemon": self.daemon_name,
            "hostname": self.hostname,
            "subject": self.subject,
            "timestamp": self.timestamp.isoformat(),
        }


class BaseNotifier(ABC):
    """Base class for alert channels."""

    name = "base"

    def __init__(self, config: WatchdogConfig, dry_run: bool = False):
        self.config = config
        self.dry_run = dry_run

    @abstractmethod
    def send(self, event: AlertEvent) -> tuple[bool, str]:
        """Send alert. Returns (success, message)."""
        pass


class MailCommandNotifier(BaseNotifier):
    """Hands the alert to ``shCmd -c "mailCmd -s <subject> <addresses>"``."""

    name = "mail"

    def command(self, event: AlertEvent) -> list[str]:
        mail = (
            f"{self.config.mail_cmd} -s {shlex.quote(event.subject)} "
            f"{self.config.email_addresses} {MAIL_REDIRECT}"
        )
        return [self.config.sh_cmd, "-c", mail]

    def send(self, event: AlertEvent) -> tuple[bool, str]:
        cmd = self.command(event)
        if self.dry_run:
            return True, f"[DRY-RUN] Would execute: {cmd[-1]}"

        try:
            result = subprocess.run(cmd, timeout=60)
        except subprocess.TimeoutExpired:
            return False, "Mail command timed out"
        except OSError as e:
            return False, f"Mail error: {e}"

        if result.returncode != 0:
            return False, f"Mail command exited with status {result.returncode}"
        return True, f"Mail sent to {self.config.email_addresses}"


class WebhookNotifier(BaseNotifier):
    """POSTs the alert as JSON to ``WEBHOOK_URL``."""

    name = "webhook"

    def send(self, event: AlertEvent) -> tuple[bool, str]:
        if not self.config.webhook_url:
            return False, "Webhook url required"

        if self.dry_run:
            return True, f"[DRY-RUN] Would POST to {self.config.webhook_url}"

        try:
            response = requests.post(
                self.config.webhook_url,
                json=event.to_dict(),
                timeout=30,
            )
            response.raise_for_status()
            return True, f"Webhook notification sent ({response.status_code})"
        except requests.RequestException as e:
            return False, f"Webhook error: {e}"


class NotifierFactory:
    """Factory for creating alert channels."""

    _notifiers = {
        "mail": MailCommandNotifier,
        "webhook": WebhookNotifier,
    }

    @classmethod
    def create(cls, name: str, config: WatchdogConfig, dry_run: bool = False) -> BaseNotifier:
        notifier_class = cls._notifiers.get(name.lower())
        if not notifier_class:
            raise ValueError(f"Unknown notifier type: {name}")
        return notifier_class(config, dry_run=dry_run)

    @classmethod
    def register(cls, name: str, notifier_class: type):
        """Register a custom notifier type."""
        cls._notifiers[name.lower()] = notifier_class

    @classmethod
    def for_config(cls, config: WatchdogConfig, dry_run: bool = False) -> list[BaseNotifier]:
        """Mail always; webhook when WEBHOOK_URL is set."""
        names = ["mail"]
        if config.webhook_url:
            names.append("webhook")
        return [cls.create(name, config, dry_run=dry_run) for name in names]


class AlertNotifier:
    """Sends each alert to every channel without observing delivery."""

    def __init__(self, config: WatchdogConfig, notifiers: Optional[list[BaseNotifier]] = None,
                 dry_run: bool = False):
        self.hostname = config.hostname
        if notifiers is None:
            notifiers = NotifierFactory.for_config(config, dry_run=dry_run)
        self.notifiers = notifiers

    def alert(self, kind: str, daemon_name: str) -> AlertEvent:
        event = AlertEvent(kind=kind, daemon_name=daemon_name, hostname=self.hostname)
        logger.info(f"Alert: {event.subject}")

        for notifier in self.notifiers:
            try:
                success, message = notifier.send(event)
                if success:
                    logger.debug(f"Alert sent via {notifier.name}: {message}")
                else:
                    logger.warning(f"Alert failed via {notifier.name}: {message}")
            except Exception as e:
                logger.error(f"Alert error ({notifier.name}): {e}")

        return event

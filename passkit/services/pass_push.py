"""
Pass Update Notification (APNs for PassKit)

Tells devices that a pass changed so Wallet fetches the new version.
Notification is fire-and-forget: errors are logged but never raised.
"""
import logging
from typing import Callable, Iterable, Optional

from passkit.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# (pass_type_identifier, serial_number) -> device push tokens registered for that pass
PushTokenLookup = Callable[[str, str], Iterable[str]]


class PassUpdateNotifier:
    """Interface of the change-notification collaborator"""

    def notify(self, pass_type_identifier: str, serial_number: str) -> None:
        raise NotImplementedError


class LoggingPassUpdateNotifier(PassUpdateNotifier):
    """Default notifier when push is disabled: records the change in the log only."""

    def notify(self, pass_type_identifier: str, serial_number: str) -> None:
        logger.info(f"Pass updated: {pass_type_identifier}/{serial_number} (push disabled)")


class ApnsPassUpdateNotifier(PassUpdateNotifier):
    """
    Silent PassKit push for every device registered for a pass.

    Device registration is owned by the embedding application, which supplies
    ``push_tokens_for``. The APNs topic is the pass type identifier.
    """

    def __init__(self, settings: Settings, push_tokens_for: Optional[PushTokenLookup] = None):
        self.settings = settings
        self.push_tokens_for = push_tokens_for
        self._client = None

    def _apns_client(self):
        """
        Lazily import and construct the APNs client.

        Keeps apns2 an optional dependency when push is disabled.
        """
        if self._client is None:
            from apns2.client import APNsClient  # type: ignore
            from apns2.credentials import TokenCredentials  # type: ignore

            if not self.settings.apns_configured:
                raise RuntimeError("Apple Wallet APNs credentials not fully configured")

            credentials = TokenCredentials(
                auth_key_path=self.settings.APPLE_WALLET_APNS_AUTH_KEY_PATH,
                auth_key_id=self.settings.APPLE_WALLET_APNS_KEY_ID,
                team_id=self.settings.APPLE_WALLET_APNS_TEAM_ID,
            )
            self._client = APNsClient(
                credentials,
                use_sandbox=self.settings.APPLE_WALLET_APNS_ENV == "sandbox",
            )
        return self._client

    def notify(self, pass_type_identifier: str, serial_number: str) -> None:
        if self.push_tokens_for is None:
            logger.info(f"No push token lookup configured, skipping push for pass {serial_number}")
            return

        try:
            tokens = [t for t in self.push_tokens_for(pass_type_identifier, serial_number) if t]
        except Exception as e:
            logger.error(f"Failed to load push tokens for pass {serial_number}: {e}", exc_info=True)
            return

        if not tokens:
            logger.info(f"No devices registered for pass {serial_number}")
            return

        try:
            client = self._apns_client()
        except Exception as e:
            logger.error(f"Apple Wallet APNs client init failed: {e}", exc_info=True)
            return

        from apns2.payload import Payload  # type: ignore

        # Empty payload with content-available triggers a background update
        payload = Payload(content_available=True)
        sent = 0
        for token in tokens:
            try:
                client.send_notification(token, payload, pass_type_identifier)
                sent += 1
            except Exception as e:
                logger.error(f"Failed to send pass update push for {serial_number}: {e}", exc_info=True)

        logger.info(f"Sent PassKit push for pass {serial_number} to {sent}/{len(tokens)} device(s)")


def build_notifier(
    settings: Optional[Settings] = None,
    push_tokens_for: Optional[PushTokenLookup] = None,
) -> PassUpdateNotifier:
    """
    APNs notifier when push is configured and a device token lookup is
    supplied, otherwise the logging notifier.
    """
    settings = settings or default_settings
    if settings.apns_configured:
        if push_tokens_for is not None:
            return ApnsPassUpdateNotifier(settings, push_tokens_for)
        logger.warning("APNs is configured but no push token lookup was supplied; push disabled")
    elif settings.APPLE_PASS_PUSH_ENABLED:
        logger.warning("APPLE_PASS_PUSH_ENABLED is set but APNs credentials are incomplete; push disabled")
    return LoggingPassUpdateNotifier()

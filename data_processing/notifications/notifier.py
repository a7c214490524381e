"""
Outcome notifiers: SNS topic, SMTP e-mail, or the log.

Callers treat every notifier as best-effort and swallow NotificationError.
"""

import json
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from data_processing.config import SMTPConfig
from data_processing.errors import ConfigurationError, NotificationError

logger = logging.getLogger(__name__)

# SNS rejects subjects longer than this
MAX_SUBJECT_LENGTH = 100


def encode_message(message: Any) -> str:
    if isinstance(message, str):
        return message
    return json.dumps(message, default=str)


class Notifier(ABC):
    """Receives structured outcome events."""

    @abstractmethod
    def publish(
        self,
        message: Mapping[str, Any],
        subject: str = "Notification",
        attributes: Optional[Mapping[str, Any]] = None
    ) -> Optional[str]:
        """Publish one event; returns a message id when the backend has one."""

    def health_check(self) -> bool:
        return True


class SNSNotifier(Notifier):
    """Publishes events to an SNS topic."""

    def __init__(self, sns_client: Any, topic_arn: str):
        if not topic_arn:
            raise ConfigurationError("TOPIC_ARN is required for the SNS notifier")
        self.sns = sns_client
        self.topic_arn = topic_arn

    def publish(self, message, subject="Notification", attributes=None):
        params = {
            'TopicArn': self.topic_arn,
            'Message': encode_message(message),
            'Subject': subject[:MAX_SUBJECT_LENGTH],
            'MessageAttributes': {
                key: {'DataType': 'String', 'StringValue': str(value)}
                for key, value in (attributes or {}).items()
            }
        }

        try:
            logger.info(f"Publishing message to SNS: {self.topic_arn}")
            result = self.sns.publish(**params)
        except (ClientError, BotoCoreError) as e:
            raise NotificationError(f"Failed to publish SNS message: {e}") from e

        message_id = result.get('MessageId')
        logger.info(f"Message published with ID: {message_id}")
        return message_id

    def health_check(self) -> bool:
        try:
            self.sns.get_topic_attributes(TopicArn=self.topic_arn)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SNS health check failed: {e}")
            return False


class EmailNotifier(Notifier):
    """Sends each event as a plain-text e-mail."""

    def __init__(self, smtp_config: SMTPConfig):
        if not all([smtp_config.username, smtp_config.password, smtp_config.recipient]):
            raise ConfigurationError(
                "SMTP_USERNAME, SMTP_PASSWORD and NOTIFY_EMAIL_TO are required for e-mail notifications"
            )
        self.config = smtp_config

    def build_message(self, message, subject, attributes=None) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg['From'] = self.config.username
        msg['To'] = self.config.recipient
        msg['Subject'] = subject

        body = json.dumps(message, indent=2, default=str) if not isinstance(message, str) else message
        if attributes:
            lines = [f"- {key}: {value}" for key, value in attributes.items()]
            body = f"{body}\n\nAttributes:\n" + "\n".join(lines)

        msg.attach(MIMEText(body, 'plain'))
        return msg

    def publish(self, message, subject="Notification", attributes=None):
        msg = self.build_message(message, subject, attributes)

        try:
            with smtplib.SMTP(self.config.server, self.config.port) as server:
                if self.config.use_tls:
                    server.starttls()

                server.login(self.config.username, self.config.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send notification e-mail: {e}") from e

        logger.info(f"Notification e-mail sent to {self.config.recipient}")
        return None


class LogNotifier(Notifier):
    """Writes events to the log; used when no topic is configured."""

    def publish(self, message, subject="Notification", attributes=None):
        logger.info(f"{subject}: {encode_message(message)}")
        return None

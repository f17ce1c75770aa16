"""
=============================================================================
SNS SERVICE - Alert delivery over Amazon SNS
=============================================================================

Used to tell customers about:
- Low or depleted prepaid token balances
- Daily usage above their meter category's ceiling

Alerts go to a topic (email and SMS subscribers) or straight to a phone
number as a single SMS.

Flow:
-----
[API] --> [SNS Topic] --> [Email subscriber]
                     --> [SMS subscriber]
[API] --> [Phone number] (direct SMS)
=============================================================================
"""

import logging
import os
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from backend.lib.dynamodb_service import aws_credentials

logger = logging.getLogger(__name__)

# Subject lines are limited to 100 characters by SNS
MAX_SUBJECT = 100


class SNSService:
    """
    Publish energy alerts via Amazon SNS.

    Usage:
        sns = SNSService()
        sns.create_topic_if_not_exists()
        sns.subscribe("+254700000000")
        sns.send_token_alert("37192835410", alert)
    """

    def __init__(self, topic_arn: str = None, client=None):
        """
        Args:
            topic_arn: Optional pre-existing topic ARN. Falls back to
                       SNS_TOPIC_ARN, or to creating SNS_TOPIC_NAME.
            client: pre-built boto3 SNS client (tests).
        """
        self.topic_arn = topic_arn or os.getenv('SNS_TOPIC_ARN')
        self.topic_name = os.getenv('SNS_TOPIC_NAME', 'EnergyAlerts')
        self.sns_client = client or boto3.client('sns', **aws_credentials())

    def create_topic_if_not_exists(self) -> Optional[str]:
        """
        create_topic is idempotent: an existing topic's ARN is returned.

        Returns:
            str: The topic ARN, or None if creation failed
        """
        try:
            response = self.sns_client.create_topic(Name=self.topic_name)
            self.topic_arn = response['TopicArn']
            logger.info("SNS topic ready: %s", self.topic_arn)
            return self.topic_arn

        except ClientError as e:
            logger.error("Failed to create SNS topic: %s", e)
            return None

    def subscribe(self, endpoint: str) -> Optional[str]:
        """
        Subscribe an email address or an E.164 phone number to the topic.

        Email subscriptions stay "pending confirmation" until the link in
        the confirmation mail is clicked.
        """
        if not self.topic_arn:
            logger.warning("No topic ARN configured")
            return None

        protocol = 'email' if '@' in endpoint else 'sms'
        try:
            response = self.sns_client.subscribe(
                TopicArn=self.topic_arn,
                Protocol=protocol,
                Endpoint=endpoint
            )
            return response['SubscriptionArn']

        except ClientError as e:
            logger.error("Failed to subscribe %s endpoint: %s", protocol, e)
            return None

    def list_subscriptions(self) -> List[Dict]:
        if not self.topic_arn:
            return []

        try:
            response = self.sns_client.list_subscriptions_by_topic(TopicArn=self.topic_arn)
            return response.get('Subscriptions', [])

        except ClientError as e:
            logger.error("Failed to list subscriptions: %s", e)
            return []

    def send_alert(self, subject: str, message: str) -> bool:
        """
        Publish to every topic subscriber.

        Returns:
            bool: True if the message was published
        """
        if not self.topic_arn:
            logger.warning("No topic ARN configured")
            return False

        try:
            self.sns_client.publish(
                TopicArn=self.topic_arn,
                Subject=subject[:MAX_SUBJECT],
                Message=message
            )
            return True

        except ClientError as e:
            logger.error("Failed to send alert: %s", e)
            return False

    def send_sms(self, phone_number: str, message: str) -> bool:
        try:
            self.sns_client.publish(PhoneNumber=phone_number, Message=message)
            return True

        except ClientError as e:
            logger.error("Failed to send SMS: %s", e)
            return False

    def send_token_alert(self, meter_number: str, alert: Dict, phone_number: str = None) -> bool:
        """
        Deliver a token balance alert as produced by balance.token_alert().
        Goes to `phone_number` directly when given, else to the topic.
        """
        message = f"""
{alert['title']}

Meter: {meter_number}
Balance: KSh {alert['token_balance']:.2f}
Estimated days remaining: {alert['estimated_days']}

{alert['message']}

---
Energy Insights
        """.strip()

        if phone_number:
            return self.send_sms(phone_number, message)
        return self.send_alert(f"{alert['title']} - {meter_number}", message)

    def send_usage_alert(self, meter_number: str, current_kwh: float, threshold_kwh: float,
                         day: str = "today") -> bool:
        """Topic alert for a day whose usage is above the category's ceiling."""
        subject = f"High Electricity Usage Alert - {meter_number}"

        message = f"""
Electricity Usage Alert

Meter: {meter_number}
Usage ({day}): {current_kwh:.2f} kWh
Threshold: {threshold_kwh:.2f} kWh

Your electricity consumption has exceeded the set threshold!
Please check your appliances for unusual power consumption.

---
Energy Insights
        """.strip()

        return self.send_alert(subject, message)

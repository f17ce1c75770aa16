# backend/lambda_handlers/send_alert.py
"""
Lambda function sending token balance alerts via SNS.
Can be triggered by DynamoDB Streams, CloudWatch Events, or API Gateway.
"""
import json
import logging

from botocore.exceptions import ClientError

from backend.lib.dynamodb_service import DynamoDBService
from backend.lib.insights_core.balance import token_alert, token_analytics
from backend.lib.insights_core.io import reading_from_dict
from backend.lib.sns_service import SNSService

logger = logging.getLogger()
logger.setLevel(logging.INFO)

db = DynamoDBService()
sns = SNSService()


def lambda_handler(event, context):
    logger.info("Received event: %s", json.dumps(event))

    try:
        if 'Records' in event and event['Records'] and \
                event['Records'][0].get('eventSource') == 'aws:dynamodb':
            meters = {
                record['dynamodb']['NewImage']['meter_number']['S']
                for record in event['Records']
                if record.get('eventName') == 'INSERT'
            }
        elif 'queryStringParameters' in event:
            params = event.get('queryStringParameters') or {}
            if not params.get('meter_number'):
                return response(400, {'error': 'meter_number required'})
            meters = {params['meter_number']}
        else:
            # Scheduled check covers every meter in the table
            meters = set(db.get_all_meters())

        sent = [meter for meter in sorted(meters) if check_meter(meter)]
        return response(200, {'meters_checked': len(meters), 'alerts_sent': len(sent), 'meters': sent})

    except Exception as e:
        logger.exception("Error: %s", e)
        return response(500, {'error': str(e)})


def check_meter(meter_number: str) -> bool:
    """Publish an alert for this meter if its simulated balance is low."""
    try:
        items = db.get_readings_for_meter(meter_number)
    except ClientError as e:
        logger.error("Reading query failed for %s: %s", meter_number, e)
        return False
    readings = [reading_from_dict(item) for item in items]
    alert = token_alert(token_analytics(readings))
    if alert is None:
        return False
    return sns.send_token_alert(meter_number, alert)


def response(status_code: int, body: dict) -> dict:
    """Create API Gateway response."""
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json',
            'Access-Control-Allow-Origin': '*'
        },
        'body': json.dumps(body)
    }

# backend/lambda_handlers/get_insights.py
"""
Lambda function returning a meter's dashboard snapshot
(metrics, analytics, insights) and simulated token analytics.
Triggered by API Gateway.
"""
import json
import logging

from botocore.exceptions import ClientError

from backend.lib.dynamodb_service import DynamoDBService
from backend.lib.insights_core.balance import token_analytics
from backend.lib.insights_core.dashboard import dashboard_snapshot
from backend.lib.insights_core.io import reading_from_dict
from backend.lib.insights_core.scoring import EFFICIENCY_BANDS

logger = logging.getLogger()
logger.setLevel(logging.INFO)

db = DynamoDBService()


def lambda_handler(event, context):
    """
    Query parameters:
    - meter_number: Required
    - category: household | SME | industry (default: household)
    """
    logger.info("Received event: %s", json.dumps(event))

    try:
        params = event.get('queryStringParameters') or {}
        meter_number = params.get('meter_number')
        category = params.get('category', 'household')

        if not meter_number:
            return response(400, {'error': 'meter_number is required'})
        if category not in EFFICIENCY_BANDS:
            return response(400, {'error': f"unknown category '{category}'"})

        try:
            readings = [reading_from_dict(item) for item in db.get_readings_for_meter(meter_number)]
        except ClientError as e:
            logger.error("Reading query failed: %s", e)
            body = dashboard_snapshot([], category, error='Could not load your energy readings.')
            body['meter_number'] = meter_number
            return response(200, body)

        body = dashboard_snapshot(readings, category)
        body['meter_number'] = meter_number
        body['tokens'] = token_analytics(readings).to_dict()
        return response(200, body)

    except Exception as e:
        logger.exception("Error: %s", e)
        return response(500, {'error': str(e)})


def response(status_code: int, body: dict) -> dict:
    """Create API Gateway response."""
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json',
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Methods': 'GET,OPTIONS',
            'Access-Control-Allow-Headers': 'Content-Type'
        },
        'body': json.dumps(body)
    }

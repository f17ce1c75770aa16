"""
=============================================================================
ENERGY INSIGHTS - MAIN FLASK APPLICATION
=============================================================================

JSON backend for the energy-monitoring dashboard. It serves values derived
from a meter's recent readings:
- Daily / weekly / monthly usage and cost
- Cost and consumption trends (increasing / decreasing / stable)
- Rule-based insights (peak hours, efficiency, device share, budget)
- Simulated prepaid token balance and days remaining
- Bill estimates (flat rate and tariff breakdown)
- Token balance alerts over SNS (email / SMS)

Storage:
- Local JSON Lines files by default (READINGS_DATA_DIR)
- DynamoDB when USE_DYNAMODB=true

How to run:
    python -m backend.app

Then visit: http://127.0.0.1:5000
=============================================================================
"""

import json
import logging
import math
import os
from collections import defaultdict
from pathlib import Path

from botocore.exceptions import ClientError
from dotenv import load_dotenv
from flask import Flask, jsonify, request

from backend.lib.insights_core.balance import TOKEN_CEILING, token_alert, token_analytics
from backend.lib.insights_core.dashboard import dashboard_snapshot, derive_insights
from backend.lib.insights_core.estimator import BillingEstimator, calculate_bill
from backend.lib.insights_core.io import (
    billing_from_dict,
    parse_csv_string,
    reading_from_dict,
)
from backend.lib.insights_core.processor import EnergyAnalyzer
from backend.lib.insights_core.scoring import (
    DEFAULT_CATEGORY as FALLBACK_CATEGORY,
    EFFICIENCY_BANDS,
    benchmark_for,
)
from backend.lib.insights_core.trends import classify_trend

# Must run before any environment variable is read
load_dotenv()

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)

# =============================================================================
# CONFIGURATION
# =============================================================================


def configured_category(value):
    """DEFAULT_METER_CATEGORY, or the household default when it is not a known category."""
    if value in EFFICIENCY_BANDS:
        return value
    logger.warning("Unknown DEFAULT_METER_CATEGORY %r. Using '%s'.", value, FALLBACK_CATEGORY)
    return FALLBACK_CATEGORY


DEFAULT_RATE = float(os.getenv('DEFAULT_RATE_PER_KWH', '25.0'))
DEFAULT_CATEGORY = configured_category(os.getenv('DEFAULT_METER_CATEGORY', FALLBACK_CATEGORY))
TOKEN_CEILING_KSH = float(os.getenv('SIMULATED_TOKEN_CEILING', str(TOKEN_CEILING)))

DATA_DIR = Path(os.getenv('READINGS_DATA_DIR', 'backend/data'))
READINGS_FILE = DATA_DIR / "readings.jsonl"
BILLING_FILE = DATA_DIR / "billing.jsonl"

DATA_UNAVAILABLE = "Could not load your energy readings. Please try again later."

# =============================================================================
# AWS SERVICE INITIALIZATION
# =============================================================================
# Each service is switched on by an environment flag. A service that fails
# to initialise is switched back off and the app keeps running without it.

USE_DYNAMODB = os.getenv('USE_DYNAMODB', 'false').lower() == 'true'
dynamodb_service = None

if USE_DYNAMODB:
    try:
        from backend.lib.dynamodb_service import DynamoDBService
        dynamodb_service = DynamoDBService()
        if not dynamodb_service.create_table_if_not_exists():
            raise RuntimeError("table unavailable")
        logger.info("DynamoDB storage enabled")
    except Exception as e:
        logger.warning("DynamoDB initialization failed: %s. Using local storage.", e)
        USE_DYNAMODB = False
        dynamodb_service = None

USE_SNS = os.getenv('USE_SNS', 'false').lower() == 'true'
sns_service = None

if USE_SNS:
    try:
        from backend.lib.sns_service import SNSService
        sns_service = SNSService()
        if not sns_service.topic_arn:
            sns_service.create_topic_if_not_exists()
        logger.info("SNS notifications enabled")
    except Exception as e:
        logger.warning("SNS initialization failed: %s. Notifications disabled.", e)
        USE_SNS = False
        sns_service = None

app = Flask(__name__)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def _read_jsonl(path: Path):
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def load_readings_for_meter(meter_number: str):
    """
    All readings of one meter as EnergyReading objects.

    Reads DynamoDB when enabled, else the local JSONL file. Local duplicates
    of (meter_number, timestamp) keep the last written row.
    """
    if USE_DYNAMODB and dynamodb_service:
        items = dynamodb_service.get_readings_for_meter(meter_number)
        return [reading_from_dict(item) for item in items]

    seen = {}
    for obj in _read_jsonl(READINGS_FILE):
        if obj.get("meter_number") != meter_number:
            continue
        seen[(obj["meter_number"], obj["timestamp"])] = reading_from_dict(obj)
    return list(seen.values())


def load_readings_or_error(meter_number: str):
    """
    (readings, error_message). A storage failure is logged and reported as
    a message with no readings so routes can answer with placeholders.
    """
    try:
        return load_readings_for_meter(meter_number), None
    except (ClientError, OSError, ValueError) as e:
        logger.error("Could not load readings for %s: %s", meter_number, e)
        return [], DATA_UNAVAILABLE


def store_readings(readings) -> int:
    rows = [r.to_dict() for r in readings]
    if USE_DYNAMODB and dynamodb_service:
        return dynamodb_service.put_readings_batch(rows)

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    with READINGS_FILE.open("a", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row) + "\n")
    return len(rows)


def send_usage_alerts(readings, category: str) -> int:
    """
    Alert on every (meter, day) touched by `readings` whose stored total is
    above the category's daily_usage_high. Returns the number of alerts sent.
    """
    if not USE_SNS or not sns_service:
        return 0

    threshold = benchmark_for(category)["daily_usage_high"]
    days_by_meter = defaultdict(set)
    for r in readings:
        days_by_meter[r.meter_number].add(r.timestamp.strftime("%Y-%m-%d"))

    alerts_sent = 0
    for meter_number, days in sorted(days_by_meter.items()):
        stored, error = load_readings_or_error(meter_number)
        if error:
            continue
        daily = EnergyAnalyzer(stored).daily_usage()
        for day in sorted(days):
            kwh = daily.get(day, 0.0)
            if kwh > threshold and sns_service.send_usage_alert(meter_number, kwh, threshold, day):
                alerts_sent += 1
    return alerts_sent


def load_billing_for_user(user_id: str):
    return [
        billing_from_dict(obj) for obj in _read_jsonl(BILLING_FILE)
        if obj.get("user_id") == user_id
    ]


def meter_args():
    """
    (meter_number, category, error_response) from the query string.
    error_response is None when the arguments are usable.
    """
    meter_number = request.args.get("meter_number")
    category = request.args.get("category", DEFAULT_CATEGORY)
    if not meter_number:
        return None, None, (jsonify({"error": "meter_number required"}), 400)
    if category not in EFFICIENCY_BANDS:
        return None, None, (jsonify({"error": f"unknown category '{category}'"}), 400)
    return meter_number, category, None


def float_arg(name: str, default: float):
    """Parse a float query parameter; raises ValueError with a readable message."""
    value = request.args.get(name, default)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number")
    if not math.isfinite(number):
        raise ValueError(f"{name} must be a finite number")
    return number


@app.errorhandler(ValueError)
def handle_value_error(e):
    return jsonify({"error": str(e)}), 400


# =============================================================================
# API ROUTES - READINGS
# =============================================================================

@app.route("/")
def home():
    return jsonify({
        "service": "energy-insights",
        "storage": "dynamodb" if USE_DYNAMODB else "local",
        "sns_enabled": USE_SNS,
    })


@app.route("/upload", methods=["POST"])
def upload():
    """
    Store readings from an uploaded CSV file.

    Expected CSV format:
        id,user_id,meter_number,timestamp,kwh_consumed,total_cost
        r-1,u-1,37192835410,2025-11-01T18:00:00Z,2.4,60.0

    An optional `category` form field sets the high-usage threshold for
    SNS usage alerts.

    Returns 202 with the number of stored readings.
    """
    if "file" not in request.files:
        return jsonify({"error": "No file uploaded"}), 400
    category = request.form.get("category", DEFAULT_CATEGORY)
    if category not in EFFICIENCY_BANDS:
        return jsonify({"error": f"unknown category '{category}'"}), 400

    file = request.files["file"]
    readings = parse_csv_string(file.read().decode("utf-8"))
    stored = store_readings(readings)
    logger.info("Stored %d readings from %s", stored, file.filename)

    return jsonify({
        "upload_id": file.filename,
        "processed_count": len(readings),
        "stored_count": stored,
        "usage_alerts_sent": send_usage_alerts(readings, category),
    }), 202


@app.route("/readings", methods=["POST"])
def add_reading():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "JSON body required"}), 400
    category = data.get("category", DEFAULT_CATEGORY)
    if category not in EFFICIENCY_BANDS:
        return jsonify({"error": f"unknown category '{category}'"}), 400

    reading = reading_from_dict(data)
    store_readings([reading])
    body = reading.to_dict()
    body["usage_alerts_sent"] = send_usage_alerts([reading], category)
    return jsonify(body), 201


@app.route("/readings", methods=["GET"])
def get_readings():
    """Raw readings of a meter, most recent first."""
    meter_number, _, error = meter_args()
    if error:
        return error
    readings, load_error = load_readings_or_error(meter_number)
    return jsonify({
        "meter_number": meter_number,
        "readings": [r.to_dict() for r in EnergyAnalyzer(readings).readings],
        "error": load_error,
    })


# =============================================================================
# API ROUTES - DERIVED VALUES
# =============================================================================

@app.route("/usage", methods=["GET"])
def usage():
    """
    Usage per day or per month.

    Example Request:
        GET /usage?meter_number=37192835410&period=day
    """
    meter_number, _, error = meter_args()
    if error:
        return error
    period = request.args.get("period", "day").lower()
    if period not in ("day", "month"):
        return jsonify({"error": "period must be 'day' or 'month'"}), 400

    readings, load_error = load_readings_or_error(meter_number)
    analyzer = EnergyAnalyzer(readings)
    data = analyzer.daily_usage() if period == "day" else analyzer.monthly_usage()

    return jsonify({
        "meter_number": meter_number,
        "period": period,
        "data": [{"period": k, "total_kwh": v} for k, v in sorted(data.items())],
        "error": load_error,
    })


@app.route("/metrics", methods=["GET"])
def metrics():
    meter_number, category, error = meter_args()
    if error:
        return error
    readings, load_error = load_readings_or_error(meter_number)
    return jsonify({
        "meter_number": meter_number,
        "category": category,
        "metrics": EnergyAnalyzer(readings).summarize(category).to_dict(),
        "error": load_error,
    })


@app.route("/analytics", methods=["GET"])
def analytics():
    meter_number, category, error = meter_args()
    if error:
        return error
    readings, load_error = load_readings_or_error(meter_number)
    return jsonify({
        "meter_number": meter_number,
        "category": category,
        "analytics": EnergyAnalyzer(readings).analytics(category).to_dict(),
        "error": load_error,
    })


@app.route("/dashboard", methods=["GET"])
def dashboard():
    """
    Metrics, analytics and insights for a meter. A storage failure gives
    empty placeholders and the "Data Unavailable" insight.
    """
    meter_number, category, error = meter_args()
    if error:
        return error
    readings, load_error = load_readings_or_error(meter_number)
    snapshot = dashboard_snapshot(readings, category, error=load_error)
    snapshot["meter_number"] = meter_number
    snapshot["error"] = load_error
    return jsonify(snapshot)


@app.route("/insights", methods=["GET"])
def insights():
    """
    Insights for a meter. Always returns at least one insight; a storage
    failure is reported as a "Data Unavailable" insight, not as a 500.
    """
    meter_number, category, error = meter_args()
    if error:
        return error

    readings, load_error = load_readings_or_error(meter_number)
    results = derive_insights(readings, category, error=load_error)
    return jsonify({
        "meter_number": meter_number,
        "category": category,
        "insights": [i.to_dict() for i in results],
    })


@app.route("/insights", methods=["POST"])
def insights_for_readings():
    """
    Insights for readings sent in the request body instead of stored ones.

    Request Body (JSON):
        {"category": "household", "readings": [{...}, {...}]}
    """
    data = request.get_json(silent=True) or {}
    category = data.get("category", DEFAULT_CATEGORY)
    if category not in EFFICIENCY_BANDS:
        return jsonify({"error": f"unknown category '{category}'"}), 400
    readings = [reading_from_dict(row) for row in data.get("readings", [])]
    results = derive_insights(readings, category)
    return jsonify({"category": category, "insights": [i.to_dict() for i in results]})


@app.route("/anomalies", methods=["GET"])
def anomalies():
    """
    Day-over-day usage spikes above threshold_pct (default 50%).
    """
    meter_number, _, error = meter_args()
    if error:
        return error
    threshold = float_arg("threshold_pct", 50.0)

    readings, load_error = load_readings_or_error(meter_number)
    spikes = EnergyAnalyzer(readings).detect_spikes(threshold_pct=threshold)

    return jsonify({
        "meter_number": meter_number,
        "threshold_pct": threshold,
        "spikes": [{"date": d, "prev_kwh": p, "curr_kwh": c} for d, p, c in spikes],
        "error": load_error,
    })


@app.route("/trend", methods=["GET"])
def trend():
    if "recent" not in request.args or "prior" not in request.args:
        return jsonify({"error": "recent and prior required"}), 400
    recent = float_arg("recent", 0.0)
    prior = float_arg("prior", 0.0)
    return jsonify({"recent": recent, "prior": prior, "trend": classify_trend(recent, prior)})


@app.route("/tokens", methods=["GET"])
def tokens():
    """
    Simulated token analytics for a meter.

    Billing rows are looked up by user_id (query parameter, or the user of
    the meter's readings).
    """
    meter_number, _, error = meter_args()
    if error:
        return error

    readings, load_error = load_readings_or_error(meter_number)
    user_id = request.args.get("user_id") or (readings[0].user_id if readings else None)
    billing = []
    if user_id:
        try:
            billing = load_billing_for_user(user_id)
        except (OSError, ValueError) as e:
            logger.error("Could not load billing for %s: %s", user_id, e)
            load_error = load_error or "Could not load your purchase history."

    result = token_analytics(readings, billing, ceiling=TOKEN_CEILING_KSH)
    return jsonify({
        "meter_number": meter_number,
        "analytics": result.to_dict(),
        "alert": token_alert(result),
        "error": load_error,
    })


@app.route("/estimate", methods=["GET"])
def estimate():
    """
    Flat-rate bill estimate.

    Example:
        GET /estimate?meter_number=37192835410&rate=25&period=month
    """
    meter_number, _, error = meter_args()
    if error:
        return error
    rate = float_arg("rate", DEFAULT_RATE)
    period = request.args.get("period", "day").lower()
    if period not in ("day", "month"):
        return jsonify({"error": "period must be 'day' or 'month'"}), 400

    readings, load_error = load_readings_or_error(meter_number)
    analyzer = EnergyAnalyzer(readings)
    usage_data = analyzer.daily_usage() if period == "day" else analyzer.monthly_usage()
    cost = BillingEstimator(rate).estimate_cost(usage_data)

    return jsonify({
        "meter_number": meter_number,
        "period": period,
        "estimated_cost": cost,
        "rate_per_kwh": rate,
        "currency": "KSh",
        "error": load_error,
    })


@app.route("/bill", methods=["GET"])
def bill():
    if "kwh" not in request.args:
        return jsonify({"error": "kwh required"}), 400
    kwh = float_arg("kwh", 0.0)
    rate = float_arg("rate", 10.0)
    exclude_levies = request.args.get("exclude_levies", "false").lower() == "true"
    return jsonify(calculate_bill(kwh, rate, exclude_levies).to_dict())


# =============================================================================
# API ROUTES - ALERTS (SNS)
# =============================================================================

@app.route("/sns/status", methods=["GET"])
def sns_status():
    return jsonify({
        "sns_enabled": USE_SNS,
        "topic_arn": sns_service.topic_arn if sns_service else None,
        "subscriptions": sns_service.list_subscriptions() if sns_service else [],
    })


@app.route("/sns/subscribe", methods=["POST"])
def sns_subscribe():
    """
    Subscribe an email address or phone number to alerts.

    Request Body (JSON):
        {"endpoint": "user@example.com"} or {"endpoint": "+254700000000"}
    """
    if not USE_SNS or not sns_service:
        return jsonify({"error": "SNS not enabled"}), 400

    data = request.get_json(silent=True) or {}
    endpoint = data.get("endpoint")
    if not endpoint:
        return jsonify({"error": "endpoint required"}), 400

    subscription_arn = sns_service.subscribe(endpoint)
    if not subscription_arn:
        return jsonify({"error": "Failed to subscribe"}), 500
    return jsonify({"subscription_arn": subscription_arn})


@app.route("/alerts/tokens", methods=["POST"])
def token_balance_alert():
    """
    Check a meter's simulated token balance and publish an alert if it is
    low.

    Request Body (JSON):
        {"meter_number": "37192835410", "phone_number": "+254700000000"}
    """
    if not USE_SNS or not sns_service:
        return jsonify({"error": "SNS not enabled"}), 400

    data = request.get_json(silent=True) or {}
    meter_number = data.get("meter_number")
    if not meter_number:
        return jsonify({"error": "meter_number required"}), 400

    readings, load_error = load_readings_or_error(meter_number)
    if load_error:
        return jsonify({"error": load_error}), 503

    result = token_analytics(readings, ceiling=TOKEN_CEILING_KSH)
    alert = token_alert(result)
    if alert is None:
        return jsonify({"meter_number": meter_number, "alert_sent": False})

    if not sns_service.send_token_alert(meter_number, alert, data.get("phone_number")):
        return jsonify({"error": "Failed to send alert"}), 500

    logger.info("Token alert %s sent for meter %s", alert["type"], meter_number)
    return jsonify({"meter_number": meter_number, "alert_sent": True, "alert": alert})


if __name__ == "__main__":
    app.run(debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true')

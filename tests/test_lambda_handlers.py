# tests/test_lambda_handlers.py
import json
from datetime import datetime, timezone

from botocore.exceptions import ClientError

from backend.lambda_handlers import get_insights, send_alert


class FakeDB:
    def __init__(self, rows=None, error=None, failing=()):
        self.rows = rows or {}
        self.error = error
        self.failing = set(failing)

    def get_readings_for_meter(self, meter_number):
        if self.error or meter_number in self.failing:
            raise self.error or query_error()
        return self.rows.get(meter_number, [])

    def get_all_meters(self):
        return sorted(self.rows)


class FakeSNS:
    def __init__(self):
        self.sent = []

    def send_token_alert(self, meter_number, alert, phone_number=None):
        self.sent.append((meter_number, alert["type"]))
        return True


def query_error():
    return ClientError({"Error": {"Code": "ProvisionedThroughputExceededException",
                                  "Message": "slow down"}}, "Query")


def row(meter, kwh, cost):
    return {"id": f"{meter}-1", "user_id": "u1", "meter_number": meter,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "kwh_consumed": kwh, "total_cost": cost}


def body(result):
    return json.loads(result["body"])


def test_scheduled_check_alerts_low_meters(monkeypatch):
    sns = FakeSNS()
    monkeypatch.setattr(send_alert, "db", FakeDB({"M1": [row("M1", 24.0, 600.0)],
                                                  "M2": [row("M2", 1.0, 25.0)]}))
    monkeypatch.setattr(send_alert, "sns", sns)

    result = send_alert.lambda_handler({}, None)
    assert result["statusCode"] == 200
    assert body(result) == {"meters_checked": 2, "alerts_sent": 1, "meters": ["M1"]}
    assert sns.sent == [("M1", "token_depleted")]


def test_stream_event_checks_inserted_meters(monkeypatch):
    sns = FakeSNS()
    monkeypatch.setattr(send_alert, "db", FakeDB({"M1": [row("M1", 24.0, 600.0)]}))
    monkeypatch.setattr(send_alert, "sns", sns)
    event = {"Records": [
        {"eventSource": "aws:dynamodb", "eventName": "INSERT",
         "dynamodb": {"NewImage": {"meter_number": {"S": "M1"}}}},
        {"eventSource": "aws:dynamodb", "eventName": "REMOVE",
         "dynamodb": {"NewImage": {"meter_number": {"S": "M9"}}}},
    ]}
    assert body(send_alert.lambda_handler(event, None))["meters"] == ["M1"]


def test_api_event_requires_meter(monkeypatch):
    monkeypatch.setattr(send_alert, "db", FakeDB())
    result = send_alert.lambda_handler({"queryStringParameters": None}, None)
    assert result["statusCode"] == 400


def test_get_insights_snapshot(monkeypatch):
    monkeypatch.setattr(get_insights, "db", FakeDB({"M1": [row("M1", 2.0, 50.0)]}))
    result = get_insights.lambda_handler({"queryStringParameters": {"meter_number": "M1"}}, None)
    payload = body(result)
    assert result["statusCode"] == 200
    assert payload["has_meter_connected"] is True
    assert payload["tokens"]["data_source"] == "database"
    assert payload["insights"]


def test_get_insights_when_query_fails(monkeypatch):
    monkeypatch.setattr(get_insights, "db", FakeDB(error=query_error()))
    result = get_insights.lambda_handler({"queryStringParameters": {"meter_number": "M1"}}, None)
    payload = body(result)
    assert result["statusCode"] == 200
    assert [i["title"] for i in payload["insights"]] == ["Data Unavailable"]
    assert payload["metrics"]["daily_total"] == 0


def test_scheduled_check_continues_past_failing_meter(monkeypatch):
    sns = FakeSNS()
    rows = {"M1": [row("M1", 24.0, 600.0)], "M2": [], "M3": [row("M3", 24.0, 600.0)]}
    monkeypatch.setattr(send_alert, "db", FakeDB(rows, failing={"M2"}))
    monkeypatch.setattr(send_alert, "sns", sns)

    result = send_alert.lambda_handler({}, None)
    assert result["statusCode"] == 200
    assert body(result) == {"meters_checked": 3, "alerts_sent": 2, "meters": ["M1", "M3"]}
    assert sns.sent == [("M1", "token_depleted"), ("M3", "token_depleted")]


def test_get_insights_rejects_unknown_category(monkeypatch):
    monkeypatch.setattr(get_insights, "db", FakeDB({"M1": [row("M1", 2.0, 50.0)]}))
    event = {"queryStringParameters": {"meter_number": "M1", "category": "castle"}}
    result = get_insights.lambda_handler(event, None)
    assert result["statusCode"] == 400
    assert "castle" in body(result)["error"]

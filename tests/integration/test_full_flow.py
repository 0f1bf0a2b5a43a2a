# -*- coding: utf-8 -*-

"""
Integration tests for complete end-to-end flow.
Real Firehose payloads go through HTTP, classification, decoding and
transformation down to the forward transport.
"""

import json

from fluenthose.decoder import decode_cloudwatch_logs, decode_record_data
from fluenthose.metrics import STATUS_SUCCESS, get_event_count


# CloudFront real-time log record captured from a Firehose delivery
CLOUDFRONT_RECORD_DATA = (
    "MTYwNzM3NDMyMS41NDEJMTI3LjAuMC4xCTAuMDQyCTIwMAk0ODUJR0VUCWh0dHAJdGVzdC5jbG91ZGZyb250Lm5ldAkvaT9zdG09MTYwNzM3NDMyMTU2MyZlPXBwJnVybD1odHRwJTI1M0ElMjUyRiUyNTJGbG9jYWxob3N0JTI1M0E1MDAwJTI1MkZwYWdlLTImcmVmcj1odHRwJTI1M0ElMjUyRiUyNTJGbG9jYWxob3N0JTI1M0E1MDAwJTI1MkYmcHBfbWl4PTAmcHBfbWF4PTAmcHBfbWl5PTAmcHBfbWF5PTAmdHY9anMtMi42LjImdG5hPWNmJmFpZD1zaXRlJnA9d2ViJnR6PUFtZXJpY2ElMjUyRk5ld19Zb3JrJmxhbmc9ZW4tVVMmY3M9VVRGLTgmcmVzPTM4NDB4MTYwMCZjZD0yNCZjb29raWU9MSZlaWQ9ZDc3ODEyN2QtNGRkZi00YzA0LTkwYWYtZmZjY2M5ODBlZWU4JmR0bT0xNjA3Mzc0MzIxNTYxJnZwPTI0NTB4MTQzMSZkcz0yNDUweDE0MzEmdmlkPTUmc2lkPWE4OGVjNzgyLTcxM2ItNGUwZC1iMmRhLWM0MDhlNTczMDgzNCZkdWlkPWVhYTY2NGY1LThiYTktNDFlOS05Yzk4LWEyYWQwODhjYTQ0MCZmcD0yMDMzMTMwOTA4CTc0NQlFV1I1Mi1DNAk2UGZaZTBjY19BalhVakZ1R25MOXBHT21GZFV4OHhSOFpVOG5yNDRKWUpXaS1EYWVKamN4a3c9PQl0ZXN0LmNsb3VkZnJvbnQubmV0CTAuMDQyCUhUVFAvMS4xCUlQdjQJTW96aWxsYS81LjAlMjAoTWFjaW50b3NoOyUyMEludGVsJTIwTWFjJTIwT1MlMjBYJTIwMTAuMTU7JTIwcnY6ODMuMCklMjBHZWNrby8yMDEwMDEwMSUyMEZpcmVmb3gvODMuMAlodHRwOi8vbG9jYWxob3N0OjUwMDAvcGFnZS0yCS0Jc3RtPTE2MDczNzQzMjE1NjMmZT1wcCZ1cmw9aHR0cCUyNTNBJTI1MkYlMjUyRmxvY2FsaG9zdCUyNTNBNTAwMCUyNTJGcGFnZS0yJnJlZnI9aHR0cCUyNTNBJTI1MkYlMjUyRmxvY2FsaG9zdCUyNTNBNTAwMCUyNTJGJnBwX21peD0wJnBwX21heD0wJnBwX21peT0wJnBwX21heT0wJnR2PWpzLTIuNi4yJnRuYT1jZiZhaWQ9c2l0ZSZwPXdlYiZ0ej1BbWVyaWNhJTI1MkZOZXdfWW9yayZsYW5nPWVuLVVTJmNzPVVURi04JnJlcz0zODQweDE2MDAmY2Q9MjQmY29va2llPTEmZWlkPWQ3NzgxMjdkLTRkZGYtNGMwNC05MGFmLWZmY2NjOTgwZWVlOCZkdG09MTYwNzM3NDMyMTU2MSZ2cD0yNDUweDE0MzEmZHM9MjQ1MHgxNDMxJnZpZD01JnNpZD1hODhlYzc4Mi03MTNiLTRlMGQtYjJkYS1jNDA4ZTU3MzA4MzQmZHVpZD1lYWE2NjRmNS04YmE5LTQxZTktOWM5OC1hMmFkMDg4Y2E0NDAmZnA9MjAzMzEzMDkwOAlNaXNzCS0JLQktCU1pc3MJLQktCWltYWdlL2dpZgkzNQktCS0JNDkzMjMJTWlzcwlVUwlnemlwLCUyMGRlZmxhdGUJaW1hZ2Uvd2VicCwqLyoJKglIb3N0OnRlc3QuY2xvdWRmcm9udC5uZXQlMEFVc2VyLUFnZW50Ok1vemlsbGEvNS4wJTIwKE1hY2ludG9zaDslMjBJbnRlbCUyME1hYyUyME9TJTIwWCUyMDEwLjE1OyUyMHJ2OjgzLjApJTIwR2Vja28vMjAxMDAxMDElMjBGaXJlZm94LzgzLjAlMEFBY2NlcHQ6aW1hZ2Uvd2VicCwqLyolMEFBY2NlcHQtTGFuZ3VhZ2U6ZW4tVVMsZW47cT0wLjUlMEFBY2NlcHQtRW5jb2Rpbmc6Z3ppcCwlMjBkZWZsYXRlJTBBRE5UOjElMEFDb25uZWN0aW9uOmtlZXAtYWxpdmUlMEFSZWZlcmVyOmh0dHA6Ly9sb2NhbGhvc3Q6NTAwMC9wYWdlLTIlMEEJSG9zdCUwQVVzZXItQWdlbnQlMEFBY2NlcHQlMEFBY2NlcHQtTGFuZ3VhZ2UlMEFBY2NlcHQtRW5jb2RpbmclMEFETlQlMEFDb25uZWN0aW9uJTBBUmVmZXJlciUwQQk4Cg=="
)

# CloudWatch Logs subscription payload captured from a Firehose delivery
CLOUDWATCH_RECORD_DATA = (
    "H4sIAMeba18AA52TX2/aMBTF3/spUJ4h/h/beUMqYy+TKsGexlSFcGm9JXFqO2Vd1e8+O7AiTUNMy0Ok3HNybN+f7+vNZJK14H31AOuXHrJykt3O1/P7T4vVar5cZNNksIcOXJKwJFpozqQg7Cg19mHp7NAnFX2LQYAC+PAuroKDqk3queyHra+d6YOx3QfTBHA+Gr5EKYq30Wa6KmlZrHz9HbR4hi6cfa/jO0pml8KZKBQrhMJKF4QLRTllBeZMc60YLbBkSlOqlBBEx0dIRaVQHI8bGnOCiW0IVZtOQgqMCcGi0Jjpd8epTWm51022fYkH2mQlLaTC0022qwKkjFjaZISjFfSIYopLQkouSk4mM8wx3mTR+2h9OPqEzAnDOSVFTjQbxRbCo92N8t3n9VjqnQ22ts1Y/Lhe3yGSH5Mc7MGBG4XHEHpfInQ4HPLema42fdXUzno/65sq7K1rc2NRW7nvEDwatuZpMMEO/pT0NMBpWwh+9LAzAVBtu2dwD9DVMLq8HVwN9yFeldHpw850RyVUIUWVDJP4OXhwM7OLzMzenDY422Rv2djNt+k1iEITxTSJHYs4C0q14EwRzNLtw4oUklKhcYRcSHYVIidXIBIpsfxviFjniuSU85wK+ifD5eISQ3qB4QmhiZ33IUIz3sdhmMWJCaaumsSQciTRs3Whav5Cz0cXoP3Q1WmKqib+Bx7ZOG+t+fnPHAWmFzjuATp4IRKrM9A0qjdvN78A1L2XllAEAAA="
)

FIREHOSE_REQUEST_ID = "ed4acda5-034f-9f42-bba1-f29aea6d7d8f"


def _delivery(*data):
    return json.dumps(
        {
            "requestId": FIREHOSE_REQUEST_ID,
            "timestamp": 1111111,
            "records": [{"data": d} for d in data],
        }
    )


class TestCloudFrontFlow:
    """Integration tests for CloudFront deliveries."""

    def test_real_cloudfront_delivery(self, test_client, firehose_headers, fake_sender):
        """
        What it does: Delivers a real CloudFront real-time log record.
        Goal: The log line reaches the forwarder untouched.
        """
        before = get_event_count("cloudfront", STATUS_SUCCESS)

        print("Step 1: Posting the delivery...")
        response = test_client.post(
            "/",
            headers=firehose_headers(request_id=FIREHOSE_REQUEST_ID, event_type="cloudfront"),
            content=_delivery(CLOUDFRONT_RECORD_DATA),
        )
        print(f"Response: {response.status_code} {response.json()}")
        assert response.status_code == 200
        assert response.json()["requestId"] == FIREHOSE_REQUEST_ID

        print("Step 2: Checking the forwarded message...")
        assert len(fake_sender.emitted) == 1
        tag, timestamp, record = fake_sender.emitted[0]
        assert tag == "cloudfront"
        assert isinstance(timestamp, int)
        assert record["type"] == "cloudfront"
        assert record["data"].startswith("1607374321.541\t127.0.0.1")

        print("Step 3: Checking metrics...")
        assert get_event_count("cloudfront", STATUS_SUCCESS) == before + 1


class TestCloudWatchLogsFlow:
    """Integration tests for CloudWatch Logs deliveries."""

    def test_sample_payload_decodes(self):
        event = decode_cloudwatch_logs(decode_record_data(CLOUDWATCH_RECORD_DATA))

        print(f"Decoded: owner={event.owner} group={event.log_group} events={len(event.log_events)}")
        assert event.owner == "071959437513"
        assert event.log_group == "/jesse/test"

    def test_real_cloudwatch_delivery(self, test_client, firehose_headers, fake_sender):
        """
        What it does: Delivers a real CloudWatch Logs subscription record.
        Goal: One message per log event, each carrying the stream metadata.
        """
        event = decode_cloudwatch_logs(decode_record_data(CLOUDWATCH_RECORD_DATA))

        response = test_client.post(
            "/",
            headers=firehose_headers(request_id=FIREHOSE_REQUEST_ID, event_type="cloudwatchlogs"),
            content=_delivery(CLOUDWATCH_RECORD_DATA),
        )

        assert response.status_code == 200
        expected_count = len(event.log_events)
        print(f"Comparing: Expected {expected_count} messages, Got {len(fake_sender.emitted)}")
        assert len(fake_sender.emitted) == expected_count
        for (tag, timestamp, record), log_event in zip(fake_sender.emitted, event.log_events):
            assert tag == "cloudwatchlogs"
            assert timestamp == log_event.timestamp // 1000
            assert record["owner"] == "071959437513"
            assert record["logGroupName"] == "/jesse/test"
            assert record["message"] == log_event.message
            assert record["requestID"] == FIREHOSE_REQUEST_ID

    def test_mixed_batch(self, test_client, firehose_headers, fake_sender, cloudwatch_record_data):
        """
        What it does: Delivers a good record, a corrupt one and another good one.
        Goal: The corrupt record is skipped and the rest are forwarded in order.
        """
        first = cloudwatch_record_data([{"id": "1", "timestamp": 1600000000000, "message": "first"}])
        last = cloudwatch_record_data(
            [
                {"id": "2", "timestamp": 1600000001000, "message": "second"},
                {"id": "3", "timestamp": 1600000002000, "message": "third"},
            ]
        )

        response = test_client.post(
            "/",
            headers=firehose_headers(event_type="cloudwatchlogs"),
            content=_delivery(first, "aGVsbG8=", last),
        )

        assert response.status_code == 200
        assert [e[2]["message"] for e in fake_sender.emitted] == ["first", "second", "third"]


class TestFirehoseContractFlow:
    """Integration tests for the request contract as Firehose sees it."""

    def test_rejections_then_success(self, test_client, firehose_headers, fake_sender, b64):
        """
        What it does: Replays the order of checks a misconfigured stream hits.
        Goal: 401, then 400, then 200 once everything is in place.
        """
        print("Step 1: Without access key...")
        response = test_client.post("/", headers=firehose_headers(access_key=None), content=_delivery(b64("x")))
        assert response.status_code == 401

        print("Step 2: Without request id...")
        response = test_client.post("/", headers=firehose_headers(request_id=None), content=_delivery(b64("x")))
        assert response.status_code == 400

        print("Step 3: Without event type...")
        response = test_client.post("/", headers=firehose_headers(), content=_delivery(b64("x")))
        assert response.status_code == 200
        assert fake_sender.emitted == []

        print("Step 4: Fully configured...")
        response = test_client.post(
            "/", headers=firehose_headers(event_type="cloudfront"), content=_delivery(b64("x"))
        )
        assert response.status_code == 200
        assert len(fake_sender.emitted) == 1

    def test_health_and_metrics_after_delivery(self, test_client, firehose_headers, b64):
        test_client.post("/", headers=firehose_headers(event_type="cloudfront"), content=_delivery(b64("x")))

        health = test_client.get("/health")
        metrics = test_client.get("/metrics")

        assert health.json()["forwarder"]["connected"] is True
        assert 'fluenthose_events_total{type="cloudfront",status="success"}' in metrics.text

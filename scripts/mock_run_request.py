#!/usr/bin/python3

import hashlib
import hmac
import json
import sys

import requests

url = "http://localhost:5000/hook"


def send_post_request(secret, event="completed", result="SUCCESS"):
    data = {
        "event": event,
        "run": {
            "number": 1,
            "display_name": "#1",
            "url": "job/test/1/",
            "result": result,
            "building": event == "started",
            "duration": 192000,
            "causes": [{"short_description": "Started by user admin", "user_id": "admin"}],
            "env": {"NOTIFY_TARGETS": ".*", "GIT_BRANCH": "main"},
            "job": {"full_name": "test", "full_display_name": "test", "url": "job/test/"},
        },
    }
    body = json.dumps(data).encode()

    headers = {
        "Content-Type": "application/json",
        "X-Notify-Signature": "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest(),
    }

    try:
        response = requests.post(url, headers=headers, data=body)
        response.raise_for_status()
        print(f"Status Code: {response.status_code}")
        print("Response:", response.text)
        print("Request was successful.")
    except requests.exceptions.HTTPError as err:
        print(f"Error: {err}")
        print(f"Response Content: {response.text}")
    except Exception as err:
        print(f"An error occurred: {err}")

    return response.status_code


if __name__ == "__main__":
    secret = sys.argv[1] if len(sys.argv) > 1 else "change-me"
    assert send_post_request(secret, "started", None) == 200, "Start request failed"
    assert send_post_request(secret) == 200, "Test request failed: Status is not OK"

"""
Load test for the plugin publish endpoints.

Run with:
    locust -f loadtest/locustfile.py --host http://localhost:8000 --users 50 --spawn-rate 5

Set GITHUB_WEBHOOK_SECRET to the server's secret to exercise the signed
webhook endpoint as well.
"""

import json
import os
import random
import uuid

from locust import HttpUser, between, events, task
from locust.runners import MasterRunner

from plugin_publisher.publishing.signature import sign

WEBHOOK_SECRET = os.getenv("GITHUB_WEBHOOK_SECRET")


class PublishSubmitter(HttpUser):
    """Simulates plugin repositories submitting commits for review."""

    wait_time = between(1, 5)

    def on_start(self):
        """Initialize user."""
        self.owners = ["alice", "bob", "carol", "dave"]
        self.plugins = ["Translator", "MessageLogger", "Themes", "NoTrack", "Timestamps"]

    @task(5)
    def submit_commit(self):
        """Submit a fresh commit, creating or updating a request."""
        owner = random.choice(self.owners)
        self.client.post(
            f"/publish/{owner}/plugins",
            json={"plugin": random.choice(self.plugins), "targetCommit": uuid.uuid4().hex},
            name="/publish/[owner]/plugins",
        )

    @task(1)
    def submit_banned(self):
        """Banned names must be rejected cheaply."""
        with self.client.post(
            "/publish/mallory/plugins",
            json={"plugin": "HelloWorld", "targetCommit": "deadbeef"},
            catch_response=True,
        ) as response:
            if response.status_code == 400:
                response.success()

    @task(1)
    def current_build(self):
        self.client.get("/build/current")

    @task(1)
    def health_check(self):
        """Health check endpoint."""
        self.client.get("/health")


class WorkflowWebhookUser(HttpUser):
    """Signed workflow_run deliveries that never match a request."""

    wait_time = between(2, 8)

    @task
    def workflow_requested(self):
        if not WEBHOOK_SECRET:
            return

        body = json.dumps(
            {
                "action": "requested",
                "workflow_run": {
                    "id": random.randint(1, 10_000),
                    "status": "queued",
                    "conclusion": None,
                    "html_url": "https://github.com/publisher/plugins/actions/runs/1",
                    "logs_url": "https://api.github.com/repos/publisher/plugins/actions/runs/1/logs",
                },
            }
        ).encode()
        self.client.post(
            "/webhook/github",
            data=body,
            headers={
                "Content-Type": "application/json",
                "X-GitHub-Event": "workflow_run",
                "X-GitHub-Delivery": uuid.uuid4().hex,
                "X-Hub-Signature-256": sign(body, WEBHOOK_SECRET),
            },
        )


# Event hooks for custom metrics
@events.init.add_listener
def on_locust_init(environment, **kwargs):
    """Initialize custom metrics."""
    if isinstance(environment.runner, MasterRunner):
        print("Load test initialized with master runner")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n=== Load Test Summary ===")
    print(f"Total requests: {environment.stats.total.num_requests}")
    print(f"Total failures: {environment.stats.total.num_failures}")
    print(f"Avg response time: {environment.stats.total.avg_response_time:.2f}ms")
    print(f"95th percentile: {environment.stats.total.get_response_time_percentile(0.95):.2f}ms")
    print("==========================\n")

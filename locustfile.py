from locust import HttpUser, task, between
import random

from marketplace.auth import create_id_token

class MarketplaceUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Each simulated client signs in as its own identity
        self.subject = f"load_{random.randint(1, 1_000_000)}"
        token = create_id_token(self.subject, email=f"{self.subject}@example.com", name="Load Tester")
        self.headers = {"Authorization": f"Bearer {token}"}
        self.task_ids = []

    @task(4)
    def browse_shops(self):
        r = self.client.get("/api/shops")
        if r.status_code == 200 and r.json():
            shop = random.choice(r.json())
            self.client.get(f"/api/shops/{shop['id']}/products", name="/api/shops/[id]/products")

    @task(2)
    def post_task(self):
        r = self.client.post(
            "/api/tasks",
            json={
                "title": "Load test errand",
                "description": "Generated by the load test run",
                "budget": round(random.uniform(10, 500), 2),
                "location": "Soweto",
            },
            headers=self.headers,
        )
        if r.status_code == 201:
            self.task_ids.append(r.json()["id"])

    @task(1)
    def take_someone_elses_task(self):
        r = self.client.get("/api/tasks")
        if r.status_code != 200:
            return
        open_tasks = [t for t in r.json() if t["status"] == "open" and t["creatorId"] != self.subject]
        if open_tasks:
            t = random.choice(open_tasks)
            # 409 is expected when another simulated user took it first
            with self.client.patch(
                f"/api/tasks/{t['id']}/status",
                json={"status": "in_progress"},
                headers=self.headers,
                name="/api/tasks/[id]/status",
                catch_response=True,
            ) as resp:
                if resp.status_code in (200, 409):
                    resp.success()

    @task(1)
    def pending_transport(self):
        self.client.get("/api/orders/pending-transport", headers=self.headers)
